"""Shared constants for shellgate."""

# Exit codes reported by the engine
EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_TIMEOUT = 124  # GNU timeout's "timed out" status
EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127
EXIT_INTERRUPTED = 130  # 128 + SIGINT

# Defaults mirrored by EngineSettings
DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_CACHE_MAX_SIZE = 100
DEFAULT_SHELL = "bash"
DEFAULT_TIMEOUT_HELPERS = ("timeout", "gtimeout")

# Extra wait past the timeout before the whole process group is killed
WAIT_GRACE_SECONDS = 2

# Log previews of command lines are cut at this length
COMMAND_PREVIEW_LENGTH = 200


def truncate(text: str, max_length: int = COMMAND_PREVIEW_LENGTH) -> str:
    """Truncate text with ellipsis if it exceeds max_length."""
    if len(text) > max_length:
        return text[:max_length] + "..."
    return text


def signal_exit_code(returncode: int) -> int:
    """Map a subprocess return code to a shell-style exit status.

    ``subprocess`` reports a child killed by signal N as ``-N``; shells
    report the same event as ``128 + N``.
    """
    if returncode < 0:
        return 128 - returncode
    return returncode
