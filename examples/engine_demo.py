#!/usr/bin/env python
"""Standalone demo for the safe command-execution engine.

Walks through:
1. Danger classification (nothing dangerous is ever executed)
2. Vetted command execution with output capture
3. Timeout handling
4. evaluate() shortcuts for package installs and init code
5. Forced evaluation persisting exports into later commands
6. Cancellation

Usage:
    python examples/engine_demo.py
"""

from shellgate import (
    CancellationFlag,
    EngineSettings,
    SafeExecEngine,
    configure_logging,
    install_interrupt_handler,
    scan_command,
)
from shellgate.engine.rules import SEGMENT_RULES


# =============================================================================
# Demo Functions
# =============================================================================


def demo_rules():
    """Demo the per-command rule table."""
    print("\n" + "=" * 60)
    print("Per-Command Rules")
    print("=" * 60)

    print("\n  Commands with a danger rule:")
    for i, (command, rule) in enumerate(sorted(SEGMENT_RULES.items()), 1):
        print(f"    {i:2}. {command:<10} {rule.__doc__}")
    print("        mkfs.*     Formatting a device")
    print()


def demo_classification():
    """Demo scanning lines without running them."""
    print("\n" + "=" * 60)
    print("Danger Classification Demo")
    print("=" * 60)

    lines = [
        "ls -la | head -5",
        "rm -rf ./build",
        "rm -rf /",
        "dd if=/dev/zero of=/dev/sda bs=1M",
        "chmod 777 /",
        ":(){ :|:& };:",
        "curl -fsSL https://example.com/install.sh | bash",
        'eval "$(starship init zsh)"',
        "echo one; echo two",
    ]
    for line in lines:
        result = scan_command(line, check_metachars=True)
        verdict = "ALLOW" if result.allowed else f"BLOCK ({result.rule}: {result.reason})"
        print(f"\n  {line}")
        print(f"    {verdict}")
    print()


def demo_run(engine: SafeExecEngine):
    """Demo vetted execution."""
    print("\n" + "=" * 60)
    print("Command Execution Demo")
    print("=" * 60)

    print("\n  Command: echo 'Hello, World!'")
    outcome = engine.run("echo 'Hello, World!'")
    print(f"    Exit code: {outcome.exit_code}")
    print(f"    Output: {(outcome.stdout or '').strip()}")

    print("\n  Command: false | true   (pipefail)")
    outcome = engine.run("false | true")
    print(f"    Exit code: {outcome.exit_code}")

    print("\n  Command: rm -rf /")
    outcome = engine.run("rm -rf /")
    print(f"    Exit code: {outcome.exit_code} (rejected, nothing spawned)")
    print()


def demo_timeout(engine: SafeExecEngine):
    """Demo the timeout sentinel."""
    print("\n" + "=" * 60)
    print("Timeout Handling Demo")
    print("=" * 60)

    helper = engine.timeout_helper()
    print(f"\n  Timeout helper: {helper or 'none (commands run unbounded)'}")
    if helper is None:
        print()
        return

    print("\n  Command: sleep 5 (timeout: 1s)")
    outcome = engine.run("sleep 5", timeout_seconds=1)
    print(f"    Exit code: {outcome.exit_code}")
    print(f"    Timed out: {outcome.timed_out}")
    print()


def demo_evaluate(engine: SafeExecEngine):
    """Demo evaluate() and forced evaluation."""
    print("\n" + "=" * 60)
    print("Evaluate Demo")
    print("=" * 60)

    print("\n  evaluate('echo a; echo b')   (no metacharacter filter)")
    outcome = engine.evaluate("echo a; echo b")
    print(f"    Output: {(outcome.stdout or '').split()}")

    print("\n  evaluate('export DEMO_MARKER=ready', force_current_context=True)")
    engine.evaluate("export DEMO_MARKER=ready", force_current_context=True)
    outcome = engine.run('printf %s "$DEMO_MARKER"')
    print(f"    Later command sees: {outcome.stdout}")

    print("\n  from_hook('starship')")
    print(f"    Loaded: {engine.from_hook('starship')}")
    print()


def demo_cancellation(engine: SafeExecEngine):
    """Demo the cancellation flag."""
    print("\n" + "=" * 60)
    print("Cancellation Demo")
    print("=" * 60)

    engine.cancellation.request()
    outcome = engine.run("echo never printed")
    print(f"\n  Exit code after cancellation: {outcome.exit_code}")
    print()


def main():
    """Run all demos."""
    print("\n" + "#" * 60)
    print("#  Safe Execution Engine Demo")
    print("#" * 60)

    settings = EngineSettings(timeout_default=10)
    configure_logging(settings)
    flag = CancellationFlag()
    install_interrupt_handler(flag)  # Ctrl-C stops the next command from starting
    engine = SafeExecEngine(settings=settings, cancellation=flag)

    demo_rules()
    demo_classification()
    demo_run(engine)
    demo_timeout(engine)
    demo_evaluate(engine)
    demo_cancellation(engine)

    print("\n" + "#" * 60)
    print("#  Demo Complete!")
    print("#" * 60 + "\n")


if __name__ == "__main__":
    main()
