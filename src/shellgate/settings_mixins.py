"""Settings mixins for execution limits and logging.

ExecutionSettingsMixin: Timeouts, cache capacities, shell and performance mode.
LoggingSettingsMixin: Log verbosity and output format.

These live outside config.py so the settings class can be composed
from small, separately documented groups of fields.
"""

import shutil
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator

from shellgate.constants import (
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_SHELL,
    DEFAULT_TIMEOUT_HELPERS,
    DEFAULT_TIMEOUT_SECONDS,
)


class ExecutionSettingsMixin:
    """Settings consumed by the execution engine.

    Mixin class that provides:
    - Default timeout for vetted commands
    - Existence cache capacities (shared default with per-cache overrides)
    - Performance mode gate for scanning
    - Shell and timeout helper selection

    Should be composed with BaseSettings via multiple inheritance.
    """

    timeout_default: int = Field(
        default=DEFAULT_TIMEOUT_SECONDS,
        gt=0,
        title="Default Timeout",
        description="Seconds a command may run before the timeout helper stops it",
    )
    cache_max_size: int = Field(
        default=DEFAULT_CACHE_MAX_SIZE,
        gt=0,
        title="Cache Size",
        description="Capacity shared by the command and function existence caches",
    )
    command_cache_size: int | None = Field(
        default=None,
        gt=0,
        title="Command Cache Size",
        description="Capacity override for the command existence cache",
    )
    function_cache_size: int | None = Field(
        default=None,
        gt=0,
        title="Function Cache Size",
        description="Capacity override for the function existence cache",
    )
    performance_mode: bool = Field(
        default=False,
        title="Performance Mode",
        description="Skip danger scanning in evaluate() and cap log verbosity at info",
    )
    shell: str = Field(
        default=DEFAULT_SHELL,
        min_length=1,
        title="Shell",
        description="POSIX shell used to run vetted commands (must support -o pipefail)",
    )
    timeout_helpers: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TIMEOUT_HELPERS),
        title="Timeout Helpers",
        description="Timeout-enforcing utilities to look for, in order of preference",
    )
    capture_output: bool = Field(
        default=True,
        title="Capture Output",
        description="Collect stdout/stderr of executed commands into the outcome",
    )

    @field_validator("shell", mode="before")
    @classmethod
    def strip_shell(cls, v: str) -> str:
        """Strip surrounding whitespace from the shell name."""
        if isinstance(v, str):
            return v.strip()
        return v

    @property
    def effective_command_cache_size(self) -> int:
        """Capacity of the command existence cache."""
        return self.command_cache_size or self.cache_max_size

    @property
    def effective_function_cache_size(self) -> int:
        """Capacity of the function existence cache."""
        return self.function_cache_size or self.cache_max_size

    @property
    def shell_name(self) -> str:
        """Base name of the configured shell (e.g. ``bash``)."""
        return Path(self.shell).name

    def shell_available(self) -> bool:
        """Check whether the configured shell can be found."""
        return shutil.which(self.shell) is not None


class LoggingSettingsMixin:
    """Settings for log output.

    Note: This is a mixin, not a BaseSettings subclass, to avoid
    MRO issues when composed with other settings classes.
    """

    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="warning",
        title="Log Level",
        description="Logging verbosity level",
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
        title="Log Format",
        description="Log output format (console for dev, json for production)",
    )
