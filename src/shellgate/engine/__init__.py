"""Safe command-execution engine.

Vets shell command lines against a small set of danger heuristics and
runs the ones that pass under a bounded timeout:
- Tokenization into pipeline segments
- Danger classification (allowlist, metacharacters, fork bomb,
  pipe-to-shell, per-command rules)
- Bounded dispatch through ``timeout``/``gtimeout``
- Tool init hooks evaluated in a persistent shell context

Usage:
    from shellgate.engine import SafeExecEngine

    engine = SafeExecEngine()

    # Vetted and run under the default timeout
    outcome = engine.run("ls -la")

    # Rejected: exit code 1, reason in the log
    outcome = engine.run("rm -rf /")

    # Tool integration, exports persist into later commands
    engine.from_hook("zoxide")
"""

from shellgate.engine.cache import ExistenceCache, make_cache_key
from shellgate.engine.classifier import DangerClassifier, scan_command
from shellgate.engine.executor import SafeExecEngine
from shellgate.engine.hooks import from_hook
from shellgate.engine.models import (
    ExecutionOutcome,
    ScanResult,
    Segment,
    Token,
    TokenKind,
)
from shellgate.engine.rules import SEGMENT_RULES, rule_for
from shellgate.engine.sandbox import ExecutionSandbox, ShellContext
from shellgate.engine.tokenizer import CommandTokenizer, SegmentError, TokenizeError

__all__ = [
    # Main engine
    "SafeExecEngine",
    "from_hook",
    "scan_command",
    # Analysis classes
    "CommandTokenizer",
    "DangerClassifier",
    "SEGMENT_RULES",
    "rule_for",
    # Execution
    "ExecutionSandbox",
    "ShellContext",
    # Caches
    "ExistenceCache",
    "make_cache_key",
    # Errors
    "TokenizeError",
    "SegmentError",
    # Data models
    "ExecutionOutcome",
    "ScanResult",
    "Segment",
    "Token",
    "TokenKind",
]
