"""Cooperative cancellation for the execution engine.

A single process-wide flag is set by an asynchronous signal handler and
polled by the engine at its checkpoints. The engine only ever reads it.

Usage:
    flag = CancellationFlag()
    install_interrupt_handler(flag)
    engine = SafeExecEngine(cancellation=flag)
"""

from __future__ import annotations

import signal
from typing import TYPE_CHECKING, Any, Callable

from shellgate.logging import Loggers

if TYPE_CHECKING:
    from types import FrameType

logger = Loggers.runtime()


class CancellationFlag:
    """A polled, advisory cancellation request.

    Setting the flag never interrupts a running child process; it stops
    the next piece of work from starting.
    """

    def __init__(self) -> None:
        self._requested = False

    def request(self) -> bool:
        """Request cancellation.

        Returns:
            True if this call set the flag, False if it was already set.
        """
        if self._requested:
            return False
        self._requested = True
        return True

    def clear(self) -> None:
        """Withdraw a cancellation request (owner only; the engine never calls this)."""
        self._requested = False

    @property
    def is_set(self) -> bool:
        """Whether cancellation has been requested."""
        return self._requested

    def __bool__(self) -> bool:
        return self._requested

    def __repr__(self) -> str:
        return f"CancellationFlag(requested={self._requested})"


SignalHandler = Callable[[int, "FrameType | None"], Any]


def install_interrupt_handler(
    flag: CancellationFlag,
    signum: int = signal.SIGINT,
) -> SignalHandler | int | None:
    """Route a signal (SIGINT by default) to the cancellation flag.

    The first delivery logs a warning; repeated deliveries are silent.
    Must be called from the main thread, as with any ``signal.signal`` call.

    Args:
        flag: Flag to set when the signal arrives.
        signum: Signal to handle.

    Returns:
        The previously installed handler, for restoring later.
    """

    def _handle(received: int, frame: "FrameType | None") -> None:
        if flag.request():
            logger.warning(
                "interrupt_received",
                signal=signal.Signals(received).name,
                message="Gracefully shutting down...",
            )

    return signal.signal(signum, _handle)


def restore_interrupt_handler(
    previous: SignalHandler | int | None,
    signum: int = signal.SIGINT,
) -> None:
    """Reinstall a handler returned by install_interrupt_handler."""
    if previous is None:
        previous = signal.SIG_DFL
    signal.signal(signum, previous)
