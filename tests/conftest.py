"""Shared test fixtures for shellgate tests.

Provides:
- Isolation from SHELLGATE_* environment variables and global settings
- Settings and engine fixtures
- A fake Popen so dispatch can be asserted without spawning anything
- Captured structlog output
"""

import os
from typing import Generator
from unittest.mock import MagicMock, patch

import pytest
import structlog
from structlog.testing import capture_logs

from shellgate.config import EngineSettings, reload_settings, set_context_settings
from shellgate.engine import SafeExecEngine, ShellContext
from shellgate.runtime import CancellationFlag


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch) -> Generator[None, None, None]:
    """Keep tests independent of the caller's SHELLGATE_* variables."""
    for key in list(os.environ):
        if key.startswith("SHELLGATE_"):
            monkeypatch.delenv(key)
    structlog.reset_defaults()
    yield
    set_context_settings(None)
    reload_settings()
    structlog.reset_defaults()


@pytest.fixture
def settings() -> EngineSettings:
    """Settings with a short default timeout."""
    return EngineSettings(timeout_default=5)


@pytest.fixture
def cancellation() -> CancellationFlag:
    return CancellationFlag()


@pytest.fixture
def engine(settings: EngineSettings, cancellation: CancellationFlag) -> SafeExecEngine:
    """Engine with its own shell context and cancellation flag."""
    return SafeExecEngine(settings=settings, cancellation=cancellation, context=ShellContext())


@pytest.fixture
def fake_popen() -> Generator[MagicMock, None, None]:
    """Replace Popen with a mock whose process exits 0 with no output."""
    with patch("shellgate.engine.sandbox.subprocess.Popen") as popen:
        process = popen.return_value
        process.communicate.return_value = (b"", b"")
        process.returncode = 0
        yield popen


@pytest.fixture
def captured_logs() -> Generator[list[dict], None, None]:
    """Collect structlog events emitted during the test."""
    with capture_logs() as logs:
        yield logs
