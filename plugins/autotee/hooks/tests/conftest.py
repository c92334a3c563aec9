"""Shared fixtures for AutoTee hook tests.

Fixtures are auto-injected by pytest. Helper functions are in helpers.py.
"""

import sys
from pathlib import Path

import pytest

# Add scripts directory and tests directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "scripts"))
sys.path.insert(0, str(Path(__file__).parent))

import config_loader
from config_loader import AutoTeeConfig


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """No AUTOTEE_* variables, HOME in tmp, and a fresh config cache."""
    import os

    for key in list(os.environ):
        if key.startswith("AUTOTEE_"):
            monkeypatch.delenv(key, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setattr(config_loader, "_cached_config", None, raising=False)
    monkeypatch.setattr(config_loader, "_cached_cwd", None, raising=False)
    return home


@pytest.fixture
def default_config():
    return AutoTeeConfig.defaults()


@pytest.fixture
def capture_dir(tmp_path):
    path = tmp_path / "captures"
    path.mkdir()
    return path


@pytest.fixture
def make_capture(capture_dir):
    """Factory fixture writing a capture file and returning its path as str."""
    counter = {"n": 0}

    def _make(content="line 1\nline 2\n", name=None):
        counter["n"] += 1
        path = capture_dir / (name or f"autotee-test-{counter['n']}.log")
        path.write_text(content, encoding="utf-8")
        return str(path)
    return _make


@pytest.fixture
def project_dir(tmp_path):
    path = tmp_path / "project"
    path.mkdir()
    return path
