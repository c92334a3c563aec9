"""Capture retention: TTL cleanup of the capture directory.

Tests CC.01-CC.07. P1/P2.
"""

import os
import time

import pytest

import cleanup_captures
from cleanup_captures import cleanup_captures as run_cleanup
from cleanup_captures import format_summary, is_capture_file


NOW = time.time()


def _age(path, minutes):
    ts = NOW - minutes * 60
    os.utime(path, (ts, ts))


@pytest.mark.p1
class TestCleanup:

    @pytest.mark.parametrize("name,expected", [
        ("autotee-1b9d6bcd.log", True),
        ("autotee-.log", False),
        ("autotee-abc.txt", False),
        ("other-abc.log", False),
        ("autotee.log", False),
    ])
    def test_cc01_capture_file_names(self, name, expected):
        """CC.01: only {prefix}-*.log names are candidates."""
        assert is_capture_file(name) is expected

    def test_cc02_expired_captures_deleted(self, make_capture):
        """CC.02: captures older than the TTL go, newer ones stay."""
        old = make_capture("x" * 2048)
        new = make_capture()
        _age(old, 120)
        _age(new, 5)
        summary = run_cleanup(os.path.dirname(old), max_age_min=60, now=NOW)
        assert summary == {"deleted": 1, "bytes": 2048, "kept": 1}
        assert not os.path.exists(old)
        assert os.path.exists(new)

    def test_cc03_other_files_untouched(self, capture_dir):
        """CC.03: non-capture files are never removed, however old."""
        keep = capture_dir / "notes.log"
        keep.write_text("x")
        _age(keep, 10_000)
        (capture_dir / "autotee-dir.log").mkdir()
        summary = run_cleanup(str(capture_dir), max_age_min=1, now=NOW)
        assert summary["deleted"] == 0
        assert keep.exists()

    def test_cc04_custom_prefix(self, make_capture):
        """CC.04: the configured prefix selects which files are captures."""
        mine = make_capture(name="build-1.log")
        theirs = make_capture(name="autotee-1.log")
        _age(mine, 120)
        _age(theirs, 120)
        run_cleanup(os.path.dirname(mine), prefix="build", max_age_min=60, now=NOW)
        assert not os.path.exists(mine)
        assert os.path.exists(theirs)

    def test_cc05_missing_directory(self, tmp_path):
        """CC.05: a missing directory is an empty result, not an error."""
        assert run_cleanup(str(tmp_path / "missing")) == {"deleted": 0, "bytes": 0, "kept": 0}


@pytest.mark.p2
class TestCli:

    def test_cc06_format_summary(self):
        """CC.06: summary line with KB freed."""
        assert format_summary({"deleted": 2, "bytes": 3072, "kept": 4}) == (
            "[autotee] Cleanup: deleted 2 files (3.0KB), kept 4"
        )

    def test_cc07_main_uses_config(self, monkeypatch, capsys, make_capture, project_dir):
        """CC.07: main reads the temp dir from config and reports deletions."""
        old = make_capture()
        _age(old, 3000)
        monkeypatch.setenv("AUTOTEE_TEMP_DIR", os.path.dirname(old))
        monkeypatch.chdir(project_dir)
        monkeypatch.setattr("sys.argv", ["cleanup_captures.py", "-v"])
        cleanup_captures.main()
        out = capsys.readouterr().out
        assert f"Deleted (TTL): {os.path.basename(old)}" in out
        assert "deleted 1 files" in out
