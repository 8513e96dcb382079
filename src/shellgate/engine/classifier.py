"""Danger classifier for command lines.

Checks run in a fixed order and the first match wins:
1. Init-tool allowlist (the whole line is trusted bootstrap code)
2. Metacharacter pre-filter (``;``, ``&``, ``(``, ``)``; opt-in)
3. Fork-bomb literal
4. Pipe into a shell interpreter
5. Per-segment command rules

The classifier is a pure function of the line: it keeps no state between
calls and never consults the existence caches.
"""

import posixpath
import re

from shellgate.engine.models import ScanResult
from shellgate.engine.rules import rule_for, rule_name
from shellgate.engine.tokenizer import (
    CommandTokenizer,
    SegmentError,
    TokenizeError,
    next_command,
)

# Tools whose shell-integration output is trusted
INIT_TOOLS: tuple[str, ...] = (
    "starship",
    "mise",
    "direnv",
    "zoxide",
    "atuin",
    "mcfly",
    "fzf",
    "oh-my-posh",
)

INIT_SHELLS: tuple[str, ...] = (
    "bash",
    "zsh",
    "fish",
    "sh",
    "ksh",
    "dash",
    "tcsh",
    "elvish",
    "nu",
    "pwsh",
    "powershell",
    "xonsh",
)

SHELL_INTERPRETERS: frozenset[str] = frozenset({"sh", "bash", "zsh", "ksh", "dash"})

PACKAGE_MANAGERS: tuple[str, ...] = (
    "npm",
    "yarn",
    "pip",
    "pip3",
    "cargo",
    "brew",
    "apt",
    "yum",
    "dnf",
    "pacman",
)

# A plain word: no quoting, substitution, redirection or separators
_PLAIN_WORD = r"""[^\s;&|()<>$`'"]+"""
_ENV_PREFIX = rf"(?:env\s+)?(?:[A-Za-z_][A-Za-z0-9_]*=(?:{_PLAIN_WORD})?\s+)*"
_INIT_CORE = (
    rf"{_ENV_PREFIX}"
    rf"(?:[\w.~/-]*/)?(?:{'|'.join(re.escape(t) for t in INIT_TOOLS)})"
    rf"\s+init\s+(?:{'|'.join(INIT_SHELLS)})"
    rf"(?:\s+{_PLAIN_WORD})*"
)

INIT_PATTERN = re.compile(
    rf"""^\s*(?:
        {_INIT_CORE}
        | eval\s+"\$\(\s*{_INIT_CORE}\s*\)"
        | eval\s+\$\(\s*{_INIT_CORE}\s*\)
        | eval\s+"`\s*{_INIT_CORE}\s*`"
        | eval\s+`\s*{_INIT_CORE}\s*`
        | (?:source|\.)\s+<\(\s*{_INIT_CORE}\s*\)
    )\s*$""",
    re.VERBOSE,
)

PACKAGE_INSTALL_PATTERN = re.compile(
    rf"^\s*(?:sudo\s+)?(?:{'|'.join(PACKAGE_MANAGERS)})\s+(?:install|add)"
    r"(?:\s+[^;&|()<>$`\n]*)?$"
)

DANGEROUS_METACHARS = re.compile(r"[;&()]")

FORK_BOMB_PATTERN = re.compile(r":\s*\(\s*\)\s*\{\s*:\s*\|\s*:\s*&")


class DangerClassifier:
    """Decides whether a command line is safe to hand to a shell."""

    def __init__(self, tokenizer: CommandTokenizer | None = None):
        self.tokenizer = tokenizer or CommandTokenizer()

    def is_init_command(self, line: str) -> bool:
        """Check whether the whole line is a known tool-init invocation.

        Matches ``starship init zsh``, ``env FOO=1 zoxide init bash``,
        ``eval "$(mise init zsh)"``, ``source <(fzf init bash)`` and
        similar shapes.
        """
        return INIT_PATTERN.match(line) is not None

    def has_dangerous_metachars(self, line: str) -> bool:
        """Check the raw line for ``;``, ``&``, ``(`` or ``)``."""
        return DANGEROUS_METACHARS.search(line) is not None

    def is_package_install(self, line: str) -> bool:
        """Check whether the line is a plain package-manager install."""
        return PACKAGE_INSTALL_PATTERN.match(line) is not None

    def scan(self, line: str, check_metachars: bool = False) -> ScanResult:
        """Classify a command line.

        Args:
            line: Raw command line.
            check_metachars: Reject any line containing ``;``, ``&``,
                ``(`` or ``)`` before parsing it.

        Returns:
            ScanResult; blocked results carry a reason and a rule name.
        """
        if self.is_init_command(line):
            return ScanResult.allow()

        if check_metachars and self.has_dangerous_metachars(line):
            return ScanResult.block(
                "Command contains shell metacharacters (; & ( ))",
                "metachars",
            )

        if FORK_BOMB_PATTERN.search(line):
            return ScanResult.block("Fork bomb detected", "fork_bomb")

        try:
            tokens = self.tokenizer.tokenize(line)
            segments = self.tokenizer.segment(tokens)
        except (TokenizeError, SegmentError) as e:
            return ScanResult.block(f"Unparseable command line: {e}", "syntax")

        for index, token in enumerate(tokens):
            if not token.is_operator or token.text != "|":
                continue
            command = next_command(tokens, index + 1)
            if command is not None and posixpath.basename(command) in SHELL_INTERPRETERS:
                return ScanResult.block(
                    f"Output piped into a shell interpreter ({command})",
                    "pipe_to_shell",
                )

        for segment in segments:
            rule = rule_for(segment.command)
            if rule is None:
                continue
            reason = rule(segment.command, segment.arguments)
            if reason is not None:
                return ScanResult.block(reason, rule_name(segment.command))

        return ScanResult.allow()


_default_classifier = DangerClassifier()


def scan_command(line: str, check_metachars: bool = False) -> ScanResult:
    """Classify a command line with a shared classifier instance.

    Convenience function for callers that do not need an engine.
    """
    return _default_classifier.scan(line, check_metachars=check_metachars)
