"""Safe command-execution engine.

Main entry point for running untrusted or semi-trusted command lines:
- Input checks and cooperative cancellation
- Danger classification (see classifier.py)
- Bounded dispatch through a timeout helper (see sandbox.py)
- Normalized outcomes with structured log lines for every decision

No exception crosses the public operations; callers get an
ExecutionOutcome (or a bool / exit code) and the details go to the log.
"""

import shutil
from typing import Any, Callable

from shellgate.config import EngineSettings, get_settings
from shellgate.constants import (
    EXIT_GENERAL_ERROR,
    EXIT_INTERRUPTED,
    EXIT_SUCCESS,
    truncate,
)
from shellgate.engine.cache import COMMAND_NAMESPACE, FUNCTION_NAMESPACE, ExistenceCache
from shellgate.engine.classifier import DangerClassifier
from shellgate.engine.hooks import from_hook
from shellgate.engine.models import ExecutionOutcome, ScanResult
from shellgate.engine.sandbox import ExecutionSandbox, ShellContext
from shellgate.logging import Loggers
from shellgate.runtime import CancellationFlag

ShellFunction = Callable[..., Any]


class SafeExecEngine:
    """Vets command lines and runs them under a bounded timeout.

    Args:
        settings: Engine settings. Defaults to get_settings().
        logger: Structured logger. Defaults to Loggers.engine().
        cancellation: Flag polled before classification and before
            spawning. The engine never clears it.
        context: Environment and cwd inherited by spawned commands.
    """

    def __init__(
        self,
        settings: EngineSettings | None = None,
        logger: Any = None,
        cancellation: CancellationFlag | None = None,
        context: ShellContext | None = None,
    ):
        self.settings = settings if settings is not None else get_settings()
        self.logger = logger if logger is not None else Loggers.engine()
        self.cancellation = cancellation if cancellation is not None else CancellationFlag()
        self.context = context if context is not None else ShellContext()

        self.classifier = DangerClassifier()
        self.sandbox = ExecutionSandbox(
            shell=self.settings.shell,
            capture_output=self.settings.capture_output,
            context=self.context,
            logger=self.logger,
        )
        self.command_cache = ExistenceCache(
            self.settings.effective_command_cache_size,
            namespace=COMMAND_NAMESPACE,
            logger=self.logger,
        )
        self.function_cache = ExistenceCache(
            self.settings.effective_function_cache_size,
            namespace=FUNCTION_NAMESPACE,
            logger=self.logger,
        )
        self._functions: dict[str, ShellFunction] = {}

    # ------------------------------------------------------------------
    # Command execution
    # ------------------------------------------------------------------

    def run(self, line: str, timeout_seconds: int | None = None) -> ExecutionOutcome:
        """Vet and run a command line.

        The metacharacter pre-filter applies here: any ``;``, ``&``,
        ``(`` or ``)`` rejects the line unless it is a tool-init shape.

        Args:
            line: Command line to run.
            timeout_seconds: Time bound. Defaults to the configured one.

        Returns:
            ExecutionOutcome. Exit code 1 for empty or rejected input,
            130 when cancelled, 124 with ``timed_out`` on timeout.
        """
        rejected = self._check_input(line)
        if rejected is not None:
            return rejected

        verdict = self.classifier.scan(line, check_metachars=True)
        if verdict.blocked:
            return self._reject(line, verdict)

        return self._dispatch(line, timeout_seconds)

    def evaluate(
        self,
        line: str,
        timeout_seconds: int | None = None,
        force_current_context: bool = False,
    ) -> ExecutionOutcome:
        """Evaluate a command line, usually code emitted by another tool.

        Args:
            line: Code to evaluate.
            timeout_seconds: Time bound. Defaults to the configured one.
            force_current_context: Trust the code completely: skip
                classification and run it in the engine's ShellContext,
                keeping the environment it leaves behind.

        Returns:
            ExecutionOutcome, as for run().
        """
        rejected = self._check_input(line)
        if rejected is not None:
            return rejected

        if force_current_context:
            self.logger.debug("evaluating_in_context", command=truncate(line))
            return self._dispatch(line, timeout_seconds, in_context=True)

        skip_reason = self._scan_skip_reason(line)
        if skip_reason is not None:
            self.logger.debug("scan_skipped", reason=skip_reason, command=truncate(line))
        else:
            verdict = self.classifier.scan(line)
            if verdict.blocked:
                return self._reject(line, verdict)

        return self._dispatch(line, timeout_seconds)

    def from_hook(
        self,
        tool_name: str,
        subcommand: str = "init",
        shell_arg: str | None = None,
    ) -> bool:
        """Load a tool's shell integration (see hooks.from_hook)."""
        return from_hook(self, tool_name, subcommand=subcommand, shell_arg=shell_arg)

    def scan(self, line: str, check_metachars: bool = False) -> ScanResult:
        """Classify a line without running it."""
        return self.classifier.scan(line, check_metachars=check_metachars)

    def _scan_skip_reason(self, line: str) -> str | None:
        """Why evaluate() may skip scanning this line, if it may."""
        if self.settings.performance_mode:
            return "performance_mode"
        if self.classifier.is_init_command(line):
            return "init_command"
        if self.classifier.is_package_install(line):
            return "package_install"
        return None

    def _check_input(self, line: str) -> ExecutionOutcome | None:
        """Reject empty input and honour a pending cancellation."""
        if not line or not line.strip():
            self.logger.error("empty_command", message="No command provided")
            return ExecutionOutcome(exit_code=EXIT_GENERAL_ERROR, error="No command provided")

        if self.cancellation.is_set:
            return self._interrupted(line)
        return None

    def _interrupted(self, line: str) -> ExecutionOutcome:
        self.logger.warning("command_interrupted", command=truncate(line))
        return ExecutionOutcome(exit_code=EXIT_INTERRUPTED, error="Interrupted")

    def _reject(self, line: str, verdict: ScanResult) -> ExecutionOutcome:
        self.logger.error(
            "command_rejected",
            rule=verdict.rule,
            reason=verdict.reason,
            command=truncate(line),
        )
        return ExecutionOutcome(exit_code=EXIT_GENERAL_ERROR, error=verdict.reason)

    def _dispatch(
        self,
        line: str,
        timeout_seconds: int | None,
        in_context: bool = False,
    ) -> ExecutionOutcome:
        """Spawn a vetted line and report how it ended."""
        timeout = timeout_seconds if timeout_seconds is not None else self.settings.timeout_default
        if timeout <= 0:
            self.logger.error("invalid_timeout", timeout_seconds=timeout)
            return ExecutionOutcome(
                exit_code=EXIT_GENERAL_ERROR,
                error=f"Timeout must be positive, got {timeout}",
            )

        helper = self.timeout_helper()
        if helper is None:
            self.logger.warning(
                "timeout_helper_unavailable",
                helpers=self.settings.timeout_helpers,
                message="Running without a time bound",
            )

        # Last checkpoint before a child process exists
        if self.cancellation.is_set:
            return self._interrupted(line)

        if in_context:
            path_before = self.context.path
            outcome = self.sandbox.execute_in_context(line, timeout, helper)
            if self.context.path != path_before:
                self.command_cache.clear()
                self.logger.debug("command_cache_cleared", reason="PATH changed")
        else:
            outcome = self.sandbox.execute(line, timeout, helper)

        self._report(line, outcome, timeout)
        return outcome

    def _report(self, line: str, outcome: ExecutionOutcome, timeout: int) -> None:
        preview = truncate(line)
        if outcome.error is not None:
            self.logger.error(
                "command_spawn_failed",
                command=preview,
                exit_code=outcome.exit_code,
                error=outcome.error,
            )
        elif outcome.timed_out:
            self.logger.warning(
                "command_timed_out",
                command=preview,
                timeout_seconds=timeout,
            )
        elif outcome.exit_code != EXIT_SUCCESS:
            self.logger.warning(
                "command_failed",
                command=preview,
                exit_code=outcome.exit_code,
            )
        else:
            self.logger.debug(
                "command_succeeded",
                command=preview,
                duration_ms=outcome.duration_ms,
            )

    # ------------------------------------------------------------------
    # Command and function introspection
    # ------------------------------------------------------------------

    def timeout_helper(self) -> str | None:
        """First configured timeout helper that exists, if any."""
        for helper in self.settings.timeout_helpers:
            if self.command_exists(helper):
                return helper
        return None

    def command_exists(self, name: str) -> bool:
        """Check whether a command is on the context PATH (memoized)."""
        if not name:
            return False

        key = self.command_cache.key_for(name)
        cached = self.command_cache.lookup(key)
        if cached is not None:
            return cached

        exists = shutil.which(name, path=self.context.path) is not None
        self.command_cache.insert(key, exists)
        return exists

    def register_function(self, name: str, function: ShellFunction) -> None:
        """Register a callable that call_function() can invoke by name."""
        if not name:
            raise ValueError("Function name must not be empty")
        self._functions[name] = function
        # Updates a cached "missing" verdict in place
        key = self.function_cache.key_for(name)
        if key in self.function_cache:
            self.function_cache.insert(key, True)

    def unregister_function(self, name: str) -> bool:
        """Remove a registered function. Returns True if it existed."""
        removed = self._functions.pop(name, None) is not None
        self.function_cache.discard(self.function_cache.key_for(name))
        return removed

    def function_exists(self, name: str) -> bool:
        """Check whether a function is registered (memoized)."""
        if not name:
            return False

        key = self.function_cache.key_for(name)
        cached = self.function_cache.lookup(key)
        if cached is not None:
            return cached

        exists = name in self._functions
        self.function_cache.insert(key, exists)
        return exists

    def call_function(self, name: str, *args: Any, **kwargs: Any) -> int:
        """Call a registered function and return a shell-style exit code.

        A None return counts as success; a bool maps True to 0 and False
        to 1; any other return value is converted to an int exit code.
        Exceptions, including a failed conversion, are logged and map to 1.
        """
        if self.cancellation.is_set:
            self.logger.warning("function_interrupted", function=name)
            return EXIT_INTERRUPTED

        function = self._functions.get(name) if self.function_exists(name) else None
        if function is None:
            self.logger.warning("function_not_found", function=name)
            return EXIT_GENERAL_ERROR

        try:
            result = function(*args, **kwargs)
            if result is None:
                code = EXIT_SUCCESS
            elif isinstance(result, bool):
                code = EXIT_SUCCESS if result else EXIT_GENERAL_ERROR
            else:
                code = int(result)
        except Exception as e:
            self.logger.error("function_failed", function=name, error=str(e))
            return EXIT_GENERAL_ERROR

        if code != EXIT_SUCCESS:
            self.logger.warning("function_returned_error", function=name, exit_code=code)
        return code
