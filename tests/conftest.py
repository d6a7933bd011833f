"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Add src to the Python path
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

FIXTURES_DIR = PROJECT_ROOT / "tests" / "fixtures"
FAKE_CHILD_PATH = FIXTURES_DIR / "fake_child.py"

IS_WINDOWS = sys.platform == "win32"


@pytest.fixture
def fake_child() -> list[str]:
    """argv prefix running the fake child with this interpreter."""
    return [sys.executable, str(FAKE_CHILD_PATH)]


@pytest.fixture
def test_doc(tmp_path: Path) -> Path:
    """File containing exactly ``This is a test doc!`` (no newline)."""
    doc = tmp_path / "test.txt"
    doc.write_bytes(b"This is a test doc!")
    return doc


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch):
    """Keep PROCSTREAM_* variables of the developer's shell out of tests."""
    from procstream import config

    for name in ("PROCSTREAM_SIDECAR_DIR", "PROCSTREAM_LOG_DEBUG", "PROCSTREAM_KILL_ON_EXIT"):
        monkeypatch.delenv(name, raising=False)
    config.reload_config()
    yield
    config.reload_config()
