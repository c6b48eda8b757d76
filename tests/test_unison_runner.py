#!/usr/bin/env python3
"""
Tests for building and running the unison command.
"""

import io
import os
import sys
from unittest.mock import Mock, patch

import pytest

# Add src to path for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from hostsync.core.exceptions import DependencyMissing, SyncFailed
from hostsync.core.models import RunOptions, RunStatus
from hostsync.core.unison_runner import ProgressReporter, SyncRunner

UNISON_OUTPUT = """\
Looking for changes
Copying a.txt --> remote
Copying b.txt <-- remote
Synchronization complete at 12:00:00  (2 items transferred, 0 skipped, 0 failed)
"""


def fake_process(output: str = "", returncode: int = 0, stdout=None):
    process = Mock()
    process.stdout = stdout if stdout is not None else io.StringIO(output)
    process.wait.return_value = returncode
    return process


class _InterruptedStream:
    """Yields one line and then behaves like Ctrl-C arrived."""

    def __iter__(self):
        yield "Looking for changes\n"
        raise KeyboardInterrupt

    def close(self):
        pass


class RecordingReporter(ProgressReporter):
    def __init__(self):
        self.lines = []
        self.totals = []
        self.items = []
        self.finished = None

    def output_line(self, line):
        self.lines.append(line)

    def start(self, total):
        self.totals.append(total)

    def item(self, state):
        self.items.append(state.current_file)

    def finish(self, state):
        self.finished = state


class TestBuildCommand:
    """Test the unison command line."""

    def setup_method(self):
        """Set up test environment."""
        self.runner = SyncRunner("/usr/bin/unison", remote_unison_path="/opt/unison")

    def test_defaults(self):
        cmd = self.runner.build_command("git_sync", RunOptions())

        assert cmd[:3] == ["/usr/bin/unison", "git_sync", "-batch"]
        assert "-batch" in cmd
        assert "-auto" in cmd
        assert cmd[cmd.index("-prefer") + 1] == "newer"
        assert cmd[cmd.index("-servercmd") + 1] == "/opt/unison"
        assert "-debug" not in cmd
        assert "-force" not in cmd

    def test_debug_force_and_extra_args_last(self):
        options = RunOptions(debug=True, force=True, extra_args=["-path", "src"])
        cmd = self.runner.build_command("git_sync", options)

        assert cmd[cmd.index("-debug") + 1] == "all"
        assert cmd[cmd.index("-force") + 1] == "newer"
        assert cmd[-2:] == ["-path", "src"]


class TestSyncRunner:
    """Test running unison."""

    def setup_method(self):
        """Set up test environment."""
        self.reporter = RecordingReporter()
        self.runner = SyncRunner("unison", pref_dir="/tmp/prefs", reporter=self.reporter)

    @patch("hostsync.core.unison_runner.subprocess.Popen")
    @patch("hostsync.core.unison_runner.shutil.which", return_value="/usr/bin/unison")
    def test_dry_run_does_not_execute(self, mock_which, mock_popen):
        result = self.runner.run("git_sync", RunOptions(dry_run=True))

        mock_popen.assert_not_called()
        assert result.status == RunStatus.DRY_RUN
        assert result.command.startswith("/usr/bin/unison git_sync -batch")
        assert "-batch" in result.command
        assert "-prefer newer" in result.command
        assert "-auto" in result.command

    @patch("hostsync.core.unison_runner.shutil.which", return_value=None)
    def test_missing_binary(self, mock_which):
        with pytest.raises(DependencyMissing) as exc_info:
            self.runner.run("git_sync", RunOptions(dry_run=True))

        assert exc_info.value.exit_code == 1
        assert exc_info.value.searched_path == "unison"

    @patch("hostsync.core.unison_runner.subprocess.Popen")
    @patch("hostsync.core.unison_runner.shutil.which", return_value="/usr/bin/unison")
    def test_success_reports_progress(self, mock_which, mock_popen):
        mock_popen.return_value = fake_process(UNISON_OUTPUT)

        result = self.runner.run("git_sync")

        assert result.status == RunStatus.SUCCESS
        assert result.files_processed == 2
        assert self.reporter.totals == [2]
        assert self.reporter.items == ["a.txt", "b.txt"]
        assert self.reporter.lines[0] == "Looking for changes"
        assert self.reporter.finished.percentage == 100.0

        env = mock_popen.call_args.kwargs["env"]
        assert env["UNISON"] == "/tmp/prefs"

    @patch("hostsync.core.unison_runner.subprocess.Popen")
    @patch("hostsync.core.unison_runner.shutil.which", return_value="/usr/bin/unison")
    def test_failure_carries_output(self, mock_which, mock_popen):
        mock_popen.return_value = fake_process("Fatal error: Lost connection\n", returncode=3)

        with pytest.raises(SyncFailed) as exc_info:
            self.runner.run("git_sync")

        error = exc_info.value
        assert error.unison_exit_code == 3
        assert "Lost connection" in error.captured_output
        assert error.command.startswith("/usr/bin/unison git_sync")
        assert error.exit_code == 1

    @patch("hostsync.core.unison_runner.subprocess.Popen")
    @patch("hostsync.core.unison_runner.shutil.which", return_value="/usr/bin/unison")
    def test_interrupt_cancels(self, mock_which, mock_popen):
        process = fake_process(stdout=_InterruptedStream())
        mock_popen.return_value = process

        result = self.runner.run("git_sync")

        assert result.status == RunStatus.CANCELLED
        process.terminate.assert_called_once()
        assert self.reporter.finished is None
