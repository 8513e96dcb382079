"""Structured logging configuration for shellgate.

Uses structlog for structured, context-rich logging that supports
both human-readable console output and machine-readable JSON format.
"""

import logging
import sys
from typing import TYPE_CHECKING

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from shellgate.config import EngineSettings


def resolve_log_level(settings: "EngineSettings | None" = None) -> int:
    """Return the stdlib level number the settings ask for.

    Performance mode never allows verbosity above ``info``.
    """
    if settings is None:
        return logging.WARNING

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    if settings.performance_mode and level < logging.INFO:
        return logging.INFO
    return level


def configure_logging(
    settings: "EngineSettings | None" = None,
    cache_loggers: bool = True,
) -> None:
    """Configure structured logging based on settings.

    Args:
        settings: Engine settings. If None, uses defaults.
        cache_loggers: Cache bound loggers on first use. Tests that
            capture log output turn this off.
    """
    log_level = resolve_log_level(settings)
    log_format = settings.log_format if settings is not None else "console"

    # Common processors for all outputs
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=cache_loggers,
    )

    # Also configure standard library logging for third-party libs
    logging.basicConfig(
        format="%(message)s",
        level=log_level,
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance.

    Args:
        name: Optional logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name) if name else structlog.get_logger()


def bind_context(**kwargs: object) -> None:
    """Bind context variables to all subsequent log calls in the current context.

    Example:
        bind_context(session="login-shell")
        logger.info("command_executed")  # Will include session

    Args:
        **kwargs: Key-value pairs to bind to logging context
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


def unbind_context(*keys: str) -> None:
    """Remove specific keys from the logging context.

    Args:
        *keys: Keys to remove from context
    """
    structlog.contextvars.unbind_contextvars(*keys)


class Loggers:
    """Pre-configured logger instances for shellgate components."""

    @staticmethod
    def engine() -> structlog.stdlib.BoundLogger:
        """Logger for the execution engine."""
        return get_logger("shellgate.engine")

    @staticmethod
    def runtime() -> structlog.stdlib.BoundLogger:
        """Logger for interrupt handling."""
        return get_logger("shellgate.runtime")

    @staticmethod
    def config() -> structlog.stdlib.BoundLogger:
        """Logger for configuration."""
        return get_logger("shellgate.config")
