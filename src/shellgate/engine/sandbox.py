"""Process dispatch for vetted command lines.

Runs a command line through a POSIX shell with ``-o pipefail``, bounded by
an external timeout helper (``timeout`` / ``gtimeout``) when one is
available:

    timeout <seconds> bash -o pipefail -c <line>

Every child inherits the environment and working directory held in a
ShellContext. Trusted code evaluated "in context" writes its resulting
environment back into that ShellContext, so exports made by tool-init
code are seen by later commands.
"""

import json
import os
import signal
import subprocess
import sys
import tempfile
import time
from pathlib import Path
from typing import Any

from shellgate.constants import (
    EXIT_NOT_EXECUTABLE,
    EXIT_NOT_FOUND,
    EXIT_TIMEOUT,
    WAIT_GRACE_SECONDS,
    signal_exit_code,
)
from shellgate.engine.models import ExecutionOutcome
from shellgate.logging import Loggers

DUMP_PATH_VAR = "SHELLGATE_ENV_DUMP"
PYTHON_VAR = "SHELLGATE_PYTHON"

# Shell bookkeeping variables that must not leak back into the context
_VOLATILE_VARS = frozenset({DUMP_PATH_VAR, PYTHON_VAR, "PWD", "OLDPWD", "SHLVL", "_"})

_DUMP_SNIPPET = (
    "import json, os; "
    "json.dump({'env': dict(os.environ), 'cwd': os.getcwd()}, "
    f"open(os.environ['{DUMP_PATH_VAR}'], 'w'))"
)

# Runs on exit of the evaluating shell; `set -a` exports every assignment
_CONTEXT_PREAMBLE = f"""__shellgate_dump_env() {{
  "${PYTHON_VAR}" -c "{_DUMP_SNIPPET}"
}}
trap __shellgate_dump_env EXIT
set -a
"""


class ShellContext:
    """Environment and working directory shared by spawned commands.

    Args:
        env: Initial environment. Defaults to a copy of ``os.environ``.
        cwd: Initial working directory. None means the process cwd.
    """

    def __init__(
        self,
        env: dict[str, str] | None = None,
        cwd: Path | str | None = None,
    ):
        self.env: dict[str, str] = dict(os.environ if env is None else env)
        self.cwd: Path | None = Path(cwd) if cwd is not None else None

    @property
    def path(self) -> str | None:
        """PATH used to resolve commands in this context."""
        return self.env.get("PATH")

    def apply_dump(self, data: dict[str, Any]) -> None:
        """Replace the environment (and cwd) with a dumped snapshot."""
        env = data.get("env") or {}
        self.env = {
            key: value for key, value in env.items() if key not in _VOLATILE_VARS
        }
        cwd = data.get("cwd")
        if cwd:
            self.cwd = Path(cwd)

    def __repr__(self) -> str:
        return f"ShellContext(vars={len(self.env)}, cwd={self.cwd})"


class ExecutionSandbox:
    """Spawns vetted command lines under a shell and a timeout helper.

    The sandbox does not classify anything; callers hand it lines that
    already passed (or were exempted from) the danger classifier.
    """

    def __init__(
        self,
        shell: str = "bash",
        capture_output: bool = True,
        context: ShellContext | None = None,
        logger: Any = None,
    ):
        self.shell = shell
        self.capture_output = capture_output
        self.context = context if context is not None else ShellContext()
        self.logger = logger if logger is not None else Loggers.engine()

    def build_argv(
        self,
        line: str,
        timeout_seconds: int,
        helper: str | None,
    ) -> list[str]:
        """Build the argument vector for a command line.

        Without a helper the shell runs the line with no time bound.
        """
        argv = [self.shell, "-o", "pipefail", "-c", line]
        if helper is None:
            return argv
        return [helper, str(timeout_seconds), *argv]

    def execute(
        self,
        line: str,
        timeout_seconds: int,
        helper: str | None,
        extra_env: dict[str, str] | None = None,
    ) -> ExecutionOutcome:
        """Run a command line and wait for it to finish.

        Args:
            line: Vetted command line.
            timeout_seconds: Bound passed to the timeout helper.
            helper: Timeout helper name, or None to run unbounded.
            extra_env: Variables added on top of the context environment.

        Returns:
            ExecutionOutcome. Spawn failures map to 127 (not found) or
            126 (not executable) with ``error`` set. With a helper, the
            wait is cut off ``WAIT_GRACE_SECONDS`` after the timeout: the
            child's process group is killed and the outcome is reported
            as timed out.
        """
        argv = self.build_argv(line, timeout_seconds, helper)
        env = {**self.context.env, **(extra_env or {})}
        pipe = subprocess.PIPE if self.capture_output else None
        wait_seconds = timeout_seconds + WAIT_GRACE_SECONDS if helper else None

        start_time = time.time()
        try:
            process = subprocess.Popen(
                argv,
                stdout=pipe,
                stderr=pipe,
                cwd=self.context.cwd,
                env=env,
                start_new_session=True,
            )
        except FileNotFoundError as e:
            return ExecutionOutcome(exit_code=EXIT_NOT_FOUND, error=str(e))
        except OSError as e:
            return ExecutionOutcome(exit_code=EXIT_NOT_EXECUTABLE, error=str(e))

        try:
            stdout_bytes, stderr_bytes = process.communicate(timeout=wait_seconds)
            exit_code = signal_exit_code(process.returncode)
        except subprocess.TimeoutExpired:
            self._kill_group(process)
            stdout_bytes, stderr_bytes = process.communicate()
            exit_code = EXIT_TIMEOUT

        duration_ms = int((time.time() - start_time) * 1000)

        return ExecutionOutcome(
            exit_code=exit_code,
            timed_out=helper is not None and exit_code == EXIT_TIMEOUT,
            stdout=self._decode(stdout_bytes),
            stderr=self._decode(stderr_bytes),
            duration_ms=duration_ms,
        )

    def execute_in_context(
        self,
        code: str,
        timeout_seconds: int,
        helper: str | None,
    ) -> ExecutionOutcome:
        """Run trusted code and keep the environment it leaves behind.

        The code runs with ``set -a`` after a preamble that dumps the
        final environment and working directory to a temporary file on
        exit. Shell functions and aliases it defines do not persist.
        """
        fd, dump_path = tempfile.mkstemp(prefix="shellgate-env-", suffix=".json")
        os.close(fd)
        try:
            outcome = self.execute(
                _CONTEXT_PREAMBLE + code,
                timeout_seconds,
                helper,
                extra_env={DUMP_PATH_VAR: dump_path, PYTHON_VAR: sys.executable},
            )
            self._load_dump(Path(dump_path))
            return outcome
        finally:
            Path(dump_path).unlink(missing_ok=True)

    def _kill_group(self, process: subprocess.Popen) -> None:
        """Kill the child's whole process group, background jobs included."""
        self.logger.warning("process_group_killed", pid=process.pid)
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        except PermissionError:
            process.kill()

    def _load_dump(self, dump_path: Path) -> bool:
        """Apply a dumped environment to the context, if one was written."""
        try:
            raw = dump_path.read_text()
        except OSError as e:
            self.logger.warning("context_dump_unreadable", path=str(dump_path), error=str(e))
            return False

        if not raw.strip():
            self.logger.warning(
                "context_not_updated",
                message="Evaluated code exited before its environment was captured",
            )
            return False

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            self.logger.warning("context_dump_invalid", error=str(e))
            return False

        self.context.apply_dump(data)
        self.logger.debug("context_updated", variables=len(self.context.env))
        return True

    def _decode(self, data: bytes | None) -> str | None:
        """Decode captured output, replacing undecodable bytes."""
        if data is None:
            return None
        return data.decode("utf-8", errors="replace")
