"""shellgate - a safe command-execution engine for shell command lines.

Decides whether a command line (often code emitted by another tool) is
safe to run, runs it under a bounded timeout, and reports a normalized
outcome. It is a best-effort heuristic gate, not a sandbox.
"""

from shellgate.config import (
    EngineSettings,
    SettingsContext,
    SettingsValidationError,
    get_context_settings,
    get_settings,
    load_settings_file,
    reload_settings,
    set_context_settings,
    set_settings,
    update_settings,
    validate_settings,
)
from shellgate.engine import ExecutionOutcome, SafeExecEngine, ScanResult, scan_command
from shellgate.logging import configure_logging, get_logger
from shellgate.runtime import CancellationFlag, install_interrupt_handler
from shellgate.settings_mixins import ExecutionSettingsMixin, LoggingSettingsMixin

__all__ = [
    # Engine
    "SafeExecEngine",
    "ExecutionOutcome",
    "ScanResult",
    "scan_command",
    # Cancellation
    "CancellationFlag",
    "install_interrupt_handler",
    # Settings
    "EngineSettings",
    "SettingsContext",
    "SettingsValidationError",
    "get_settings",
    "set_settings",
    "set_context_settings",
    "get_context_settings",
    "load_settings_file",
    "update_settings",
    "validate_settings",
    "reload_settings",
    # Settings Mixins
    "ExecutionSettingsMixin",
    "LoggingSettingsMixin",
    # Logging
    "configure_logging",
    "get_logger",
]

__version__ = "0.1.0"
