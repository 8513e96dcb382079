"""Per-command danger rules.

Each rule is a pure function ``(command, arguments) -> reason | None``.
Rules are looked up by exact command name in SEGMENT_RULES; command
families sharing a prefix (``mkfs.ext4``, ``mkfs.xfs``, ...) are matched
through PREFIX_RULES.
"""

import re
from typing import Callable

DangerRule = Callable[[str, list[str]], str | None]

# Home and root targets for rm
_RM_EXACT_TARGETS = frozenset({"/", "~", "$HOME"})
_RM_TARGET_PREFIXES = ("/", "~/", "$HOME/")

# Block devices that dd must never write to
_DISK_DEVICE = re.compile(r"of=/dev/(sd|hd|nvme|disk|rdisk)")

_NUMERIC_MODE = re.compile(r"[0-9]+")

_KILL_SIGNALS = frozenset({"-9", "-KILL", "-SIGKILL"})


def _short_flags(arguments: list[str]) -> set[str]:
    """Collect single-letter flags from ``-xyz`` style arguments."""
    flags: set[str] = set()
    for arg in arguments:
        if arg.startswith("-") and not arg.startswith("--"):
            flags.update(arg[1:])
    return flags


def check_rm(command: str, arguments: list[str]) -> str | None:
    """Recursive forced removal of root or the home directory."""
    flags = _short_flags(arguments)
    if "r" not in flags or "f" not in flags:
        return None

    for arg in arguments:
        if arg in _RM_EXACT_TARGETS or arg.startswith(_RM_TARGET_PREFIXES):
            return f"Recursive forced removal of '{arg}'"
    return None


def check_dd(command: str, arguments: list[str]) -> str | None:
    """Raw writes to a disk device."""
    for arg in arguments:
        if _DISK_DEVICE.match(arg):
            return f"Raw write to disk device ({arg})"
    return None


def check_mkfs(command: str, arguments: list[str]) -> str | None:
    """Formatting a device."""
    for arg in arguments:
        if arg.startswith("/dev/"):
            return f"Creating a filesystem on {arg}"
    return None


def check_chmod(command: str, arguments: list[str]) -> str | None:
    """World-writable permissions on the filesystem root.

    Only the first bare numeric argument is treated as the mode.
    Symbolic modes (``a+rwx``) are not covered.
    """
    mode = next((arg for arg in arguments if _NUMERIC_MODE.fullmatch(arg)), None)
    if mode is None:
        return None

    try:
        value = int(mode, 8)
    except ValueError:
        return None

    if value == 0o777 and "/" in arguments:
        return "Making the filesystem root world-writable"
    return None


def check_kill(command: str, arguments: list[str]) -> str | None:
    """Mass SIGKILL of processes by name."""
    for arg in arguments:
        if arg in _KILL_SIGNALS:
            return f"Force-killing processes with {command} {arg}"
    return None


def check_userdel(command: str, arguments: list[str]) -> str | None:
    """Deleting a user together with their home directory."""
    if "-r" in arguments:
        return "Deleting a user and their home directory"
    return None


def check_groupdel(command: str, arguments: list[str]) -> str | None:
    """Deleting a group."""
    return "Deleting a group"


SEGMENT_RULES: dict[str, DangerRule] = {
    "rm": check_rm,
    "dd": check_dd,
    "chmod": check_chmod,
    "killall": check_kill,
    "pkill": check_kill,
    "userdel": check_userdel,
    "groupdel": check_groupdel,
}

PREFIX_RULES: list[tuple[str, DangerRule]] = [
    ("mkfs.", check_mkfs),
]


def rule_for(command: str) -> DangerRule | None:
    """Find the rule that applies to a command name, if any."""
    rule = SEGMENT_RULES.get(command)
    if rule is not None:
        return rule

    for prefix, prefix_rule in PREFIX_RULES:
        if command.startswith(prefix):
            return prefix_rule
    return None


def rule_name(command: str) -> str:
    """Short name of the rule family a command falls under (for logs)."""
    for prefix, _ in PREFIX_RULES:
        if command.startswith(prefix):
            return prefix.rstrip(".")
    return command
