"""Shared helper functions for AutoTee hook tests.

Import these in test files: from helpers import make_pre_tool_request, ...
Fixtures are in conftest.py and are auto-injected by pytest.
"""

import io
import json
import shutil
import subprocess
import sys
from unittest.mock import MagicMock


BASH = shutil.which("bash")


# ---------------------------------------------------------------------------
# Hook request builders
# ---------------------------------------------------------------------------

def make_pre_tool_request(command, tool_name="Bash", cwd=None, **tool_input):
    request = {
        "tool_name": tool_name,
        "tool_input": {"command": command, **tool_input},
    }
    if cwd is not None:
        request["cwd"] = str(cwd)
    return request


def make_legacy_request(command, tool_name="Bash"):
    return {"tool": {"name": tool_name, "input": {"command": command}}}


def make_post_tool_request(command, stdout="", stderr="", tool_name="Bash", cwd=None):
    request = {
        "tool_name": tool_name,
        "tool_input": {"command": command},
        "tool_response": {"stdout": stdout, "stderr": stderr, "interrupted": False},
    }
    if cwd is not None:
        request["cwd"] = str(cwd)
    return request


# ---------------------------------------------------------------------------
# Hook runner
# ---------------------------------------------------------------------------

def run_hook_main(main, monkeypatch, capsys, payload):
    """
    Call a hook main() with `payload` on stdin.

    Returns (exit_code, parsed stdout JSON or None).
    """
    raw = payload if isinstance(payload, str) else json.dumps(payload)
    monkeypatch.setattr(sys, "stdin", io.StringIO(raw))
    code = 0
    try:
        main()
    except SystemExit as e:
        code = e.code or 0
    out = capsys.readouterr().out
    return code, (json.loads(out) if out.strip() else None)


# ---------------------------------------------------------------------------
# Shell helpers
# ---------------------------------------------------------------------------

def run_bash(script, cwd=None, timeout=30):
    """Run `script` with bash -c and return the CompletedProcess."""
    return subprocess.run(
        [BASH, "-c", script],
        capture_output=True,
        text=True,
        encoding="utf-8",
        cwd=cwd,
        timeout=timeout,
    )


def mock_subprocess_result(stdout="", stderr="", returncode=0):
    """Create a mock subprocess.CompletedProcess."""
    result = MagicMock()
    result.stdout = stdout
    result.stderr = stderr
    result.returncode = returncode
    return result


class FakeConfig:
    """Minimal stand-in for AutoTeeConfig: dot-notation get over a flat dict."""

    def __init__(self, values=None):
        self.values = dict(values or {})

    def get(self, key, default=None):
        return self.values.get(key, default)

    def get_section(self, section):
        prefix = section + "."
        return {k[len(prefix):]: v for k, v in self.values.items() if k.startswith(prefix)}
