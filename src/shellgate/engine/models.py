"""Data models for the execution engine.

Provides dataclasses for tokens, pipeline segments, scan verdicts and
execution outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from shellgate.constants import EXIT_SUCCESS


class TokenKind(Enum):
    """Kind of lexical token."""

    WORD = "word"
    OPERATOR = "operator"  # |, ||, &&, ;, &


@dataclass(frozen=True)
class Token:
    """A single shell word (after quote removal) or a separator operator."""

    text: str
    kind: TokenKind = TokenKind.WORD

    @property
    def is_operator(self) -> bool:
        return self.kind is TokenKind.OPERATOR

    def __str__(self) -> str:
        return self.text


@dataclass
class Segment:
    """One command of a pipeline or command list.

    Leading precommands (``sudo``, ``env``, ...) and ``NAME=value``
    assignments are not part of ``command``/``arguments``; they are kept
    in ``prefix`` for reference.
    """

    command: str
    arguments: list[str] = field(default_factory=list)
    prefix: list[str] = field(default_factory=list)
    separator: str | None = None  # Operator that ended this segment

    @property
    def words(self) -> list[str]:
        """Command followed by its arguments."""
        return [self.command, *self.arguments]


@dataclass(frozen=True)
class ScanResult:
    """Verdict of the danger classifier.

    Attributes:
        allowed: Whether the command line passed every check.
        reason: Human-readable reason for a block (None when allowed).
        rule: Short name of the check that blocked (None when allowed).
    """

    allowed: bool
    reason: str | None = None
    rule: str | None = None

    @classmethod
    def allow(cls) -> ScanResult:
        return cls(allowed=True)

    @classmethod
    def block(cls, reason: str, rule: str) -> ScanResult:
        return cls(allowed=False, reason=reason, rule=rule)

    @property
    def blocked(self) -> bool:
        return not self.allowed

    def __bool__(self) -> bool:
        return self.allowed


@dataclass
class ExecutionOutcome:
    """Normalized result of running a command line.

    Attributes:
        exit_code: Exit status. The timeout sentinel (124) is passed through
            unchanged when the timeout helper stopped the command.
        timed_out: True iff the timeout sentinel was observed.
        stdout: Captured standard output (None when not captured).
        stderr: Captured standard error (None when not captured).
        duration_ms: Wall time spent in the child process.
        error: Why the command was not run or could not be spawned.
    """

    exit_code: int
    timed_out: bool = False
    stdout: str | None = None
    stderr: str | None = None
    duration_ms: int = 0
    error: str | None = None

    @property
    def success(self) -> bool:
        """Check if the command succeeded."""
        return self.exit_code == EXIT_SUCCESS and not self.timed_out

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "exit_code": self.exit_code,
            "timed_out": self.timed_out,
            "success": self.success,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "duration": self.duration_ms / 1000,
            "error": self.error,
        }
