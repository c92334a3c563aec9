"""PostToolUse hook: capture discovery and the additionalContext report.

Tests RR.01-RR.10. P0/P1.
"""

import pytest

import capture_report
from capture_ledger import CaptureLedger, CaptureRecord
from capture_report import (
    build_report,
    collect_captures,
    count_lines,
    describe_capture,
    process_hook_data,
    response_texts,
)
from helpers import make_post_tool_request, run_hook_main


# ---------------------------------------------------------------------------
# P0 - MUST PASS: discovery
# ---------------------------------------------------------------------------

@pytest.mark.p0
class TestCollect:

    def test_rr01_announced_capture_reported(self, make_capture):
        """RR.01: an announced, existing capture appears in the report."""
        path = make_capture("building\nerror: boom\n")
        request = make_post_tool_request("npm run build | tail", stdout=f"ok\nFull output saved to: {path}\n")
        output = process_hook_data(request, CaptureLedger())
        context = output["hookSpecificOutput"]["additionalContext"]
        assert output["hookSpecificOutput"]["hookEventName"] == "PostToolUse"
        assert context.startswith("[autotee] Full command output was captured:")
        assert f"- {path} (" in context
        assert "2 lines" in context

    def test_rr02_missing_capture_skipped(self, tmp_path, capsys):
        """RR.02: announced paths that do not exist are skipped with a warning."""
        missing = tmp_path / "autotee-gone.log"
        request = make_post_tool_request("npm test | tail", stdout=f"Full output saved to: {missing}\n")
        assert process_hook_data(request, CaptureLedger()) is None
        assert "skipping missing capture" in capsys.readouterr().err

    def test_rr03_no_announcement(self):
        """RR.03: plain output produces no report."""
        request = make_post_tool_request("ls -la", stdout="total 0\n")
        assert process_hook_data(request, CaptureLedger()) is None

    def test_rr04_other_tools_ignored(self, make_capture):
        """RR.04: only Bash responses are inspected."""
        path = make_capture()
        request = make_post_tool_request("x", stdout=f"Full output saved to: {path}\n", tool_name="Read")
        assert process_hook_data(request, CaptureLedger()) is None

    def test_rr05_ledger_records_command(self, make_capture):
        """RR.05: discovered captures land in the ledger with their command."""
        first, second = make_capture(), make_capture()
        ledger = CaptureLedger()
        texts = [f"Full output saved to: {first}", f"temp file preserved: {second}"]
        records = collect_captures(texts, "make all | tail", ledger)
        assert [r.path for r in records] == [first, second]
        assert all(r.command == "make all | tail" for r in ledger.get_captures())

    @pytest.mark.parametrize("response,expected", [
        ("plain", ["plain"]),
        ({"stdout": "a", "stderr": "", "output": "b"}, ["a", "b"]),
        (None, []),
    ])
    def test_rr06_response_texts(self, response, expected):
        """RR.06: string or dict tool responses are both read."""
        assert response_texts(response) == expected


# ---------------------------------------------------------------------------
# P1 - SHOULD PASS: report lines
# ---------------------------------------------------------------------------

@pytest.mark.p1
class TestDescribe:

    def test_rr07_describe_includes_summary_and_errors(self, make_capture):
        """RR.07: the line carries size, lines, command summary and errors."""
        path = make_capture("compiling\nerror: cannot find crate\n")
        record = CaptureLedger().add_capture(path, {"command": "cargo build | tail"})
        line = describe_capture(record)
        assert line.startswith(f"{path} (")
        assert "B, 2 lines)" in line
        assert "cargo: error: cannot find crate" in line
        assert line.endswith("[1 error]")

    def test_rr08_unreadable_capture(self, tmp_path):
        """RR.08: a capture removed after recording is reported unreadable."""
        record = CaptureRecord(path=str(tmp_path / "autotee-x.log"), command="npm test")
        assert "(unreadable:" in describe_capture(record)

    def test_rr09_count_lines_and_report(self, make_capture):
        """RR.09: line counting and the report header."""
        path = make_capture("a\nb\nc\n")
        assert count_lines(path) == 3
        assert build_report([]) == "[autotee] Full command output was captured:"

    def test_rr10_main_end_to_end(self, monkeypatch, capsys, make_capture, project_dir):
        """RR.10: main prints the report, or nothing when there is none."""
        path = make_capture()
        request = make_post_tool_request("npm test | tail", stdout=f"Full output saved to: {path}\n",
                                         cwd=project_dir)
        code, output = run_hook_main(capture_report.main, monkeypatch, capsys, request)
        assert code == 0
        assert path in output["hookSpecificOutput"]["additionalContext"]

        quiet = make_post_tool_request("ls", stdout="nothing here", cwd=project_dir)
        assert run_hook_main(capture_report.main, monkeypatch, capsys, quiet) == (0, None)
        assert run_hook_main(capture_report.main, monkeypatch, capsys, "oops") == (0, None)
