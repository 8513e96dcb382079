"""Tool shell-integration hooks.

Many command-line tools print their shell integration on request
(``starship init bash``, ``zoxide init zsh``). from_hook() fetches that
code and evaluates it in the engine's ShellContext, so the exports it
makes apply to every later command.

A missing tool is not an error: integrations are optional.
"""

import subprocess
from typing import TYPE_CHECKING

from shellgate.constants import truncate

if TYPE_CHECKING:
    from shellgate.engine.executor import SafeExecEngine


def from_hook(
    engine: "SafeExecEngine",
    tool_name: str,
    subcommand: str = "init",
    shell_arg: str | None = None,
) -> bool:
    """Fetch a tool's shell code and evaluate it in the engine's context.

    Args:
        engine: Engine whose context receives the tool's environment.
        tool_name: Tool to ask for its integration code.
        subcommand: Subcommand that prints the code.
        shell_arg: Shell name passed to the tool. Defaults to the base
            name of the configured shell.

    Returns:
        True if the code was evaluated or the tool is not installed,
        False on cancellation or any failure (all failures are logged).
    """
    logger = engine.logger

    if engine.cancellation.is_set:
        logger.warning("hook_interrupted", tool=tool_name)
        return False

    if not tool_name:
        logger.error("hook_missing_tool_name", message="No tool name provided")
        return False

    if not engine.command_exists(tool_name):
        logger.debug("hook_tool_not_installed", tool=tool_name)
        return True

    shell_arg = shell_arg or engine.settings.shell_name
    argv = [tool_name, subcommand, shell_arg]

    try:
        completed = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            timeout=engine.settings.timeout_default,
            cwd=engine.context.cwd,
            env=engine.context.env,
        )
    except subprocess.TimeoutExpired:
        logger.warning(
            "hook_timed_out",
            tool=tool_name,
            timeout_seconds=engine.settings.timeout_default,
        )
        return False
    except OSError as e:
        logger.warning("hook_spawn_failed", tool=tool_name, error=str(e))
        return False

    if completed.returncode != 0:
        logger.warning(
            "hook_failed",
            tool=tool_name,
            exit_code=completed.returncode,
            stderr=truncate(completed.stderr or ""),
        )
        return False

    code = completed.stdout or ""
    if not code.strip():
        logger.warning("hook_empty_output", tool=tool_name, subcommand=subcommand)
        return False

    outcome = engine.evaluate(code, force_current_context=True)
    if not outcome.success:
        logger.warning("hook_eval_failed", tool=tool_name, exit_code=outcome.exit_code)
        return False

    logger.debug("hook_loaded", tool=tool_name, shell=shell_arg)
    return True
