#!/usr/bin/env python3
"""
Tests for host selection, profile locking and end-to-end named command runs.
"""

import io
import multiprocessing
import os
import shutil
import sys
import tempfile
import time
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

# Add src to path for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from fakes import FakeShell, shell_result

from hostsync.core.config_store import ConfigStore
from hostsync.core.exceptions import (
    AuthenticationFailed,
    DependencyMissing,
    HostUnreachable,
    ProfileLocked,
)
from hostsync.core.locking import ProfileLock
from hostsync.core.models import RunOptions, RunStatus
from hostsync.core.sync_orchestrator import SyncOrchestrator

VERSION = "unison version 2.53.3 (ocaml 4.14.1)"


def config_text(temp_dir: str) -> str:
    return f"""\
SYNC_REMOTE_USER="alice"
SYNC_UNISON_PATH="/usr/bin/unison"
SYNC_UNISON_PREF_DIR="{temp_dir}/prefs"
SYNC_IGNORE_FILE="{temp_dir}/ignore"

COMMAND="git"
LOCAL_PATH="/home/x/git"
REMOTE_PATH="/home/x/git"
REMOTE_HOSTS="10.0.0.1,10.0.0.2"
EXTRA_OPTIONS="-maxsizethreshold 100000"
"""


def host_ssh(reachable_hosts=(), authenticated_hosts=(), unison_hosts=(), remote_version=VERSION):
    """SSH manager mock answering per host."""
    ssh = Mock()
    ssh.user = "alice"
    ssh.check_reachable.side_effect = lambda host: {
        "reachable": host in reachable_hosts, "output": "timeout",
    }
    ssh.test_connection.side_effect = lambda host: {
        "authenticated": host in authenticated_hosts,
        "unreachable": False,
        "output": "Permission denied (publickey).",
    }

    def execute(host, command, input=None, timeout=600):
        if host in unison_hosts:
            return shell_result(command, True, remote_version + "\n", host=host)
        return shell_result(command, False, host=host)

    ssh.execute_command.side_effect = execute
    return ssh


class TestSelectHost:
    """Test picking the first usable host."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.store = ConfigStore(pointer_path=os.path.join(self.temp_dir, "pointer"))
        self.config = self.store.parse(config_text(self.temp_dir))
        self.local_shell = FakeShell([("-version", True, VERSION + "\n")])

    def teardown_method(self):
        """Clean up test environment."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def orchestrator(self, ssh):
        return SyncOrchestrator(
            self.config,
            config_store=self.store,
            ssh_factory=Mock(return_value=ssh),
            local_shell=self.local_shell,
        )

    def test_dry_run_takes_first_host_without_probing(self):
        ssh = host_ssh()
        orchestrator = self.orchestrator(ssh)

        host = orchestrator.select_host(orchestrator.resolve("git"), dry_run=True)

        assert host == "10.0.0.1"
        orchestrator.ssh_factory.assert_not_called()

    def test_falls_through_to_next_host(self):
        ssh = host_ssh(
            reachable_hosts=("10.0.0.2",),
            authenticated_hosts=("10.0.0.2",),
            unison_hosts=("10.0.0.2",),
        )
        orchestrator = self.orchestrator(ssh)

        assert orchestrator.select_host(orchestrator.resolve("git")) == "10.0.0.2"
        assert orchestrator.warnings == []

    def test_last_failure_is_raised(self):
        ssh = host_ssh(reachable_hosts=("10.0.0.1", "10.0.0.2"), authenticated_hosts=("10.0.0.1",))
        orchestrator = self.orchestrator(ssh)

        with pytest.raises(AuthenticationFailed) as exc_info:
            orchestrator.select_host(orchestrator.resolve("git"))

        assert exc_info.value.host == "10.0.0.2"
        assert exc_info.value.exit_code == 3

    def test_all_unreachable(self):
        orchestrator = self.orchestrator(host_ssh())

        with pytest.raises(HostUnreachable):
            orchestrator.select_host(orchestrator.resolve("git"))

    def test_remote_unison_missing(self):
        ssh = host_ssh(reachable_hosts=("10.0.0.1", "10.0.0.2"), authenticated_hosts=("10.0.0.1", "10.0.0.2"))
        orchestrator = self.orchestrator(ssh)

        with pytest.raises(DependencyMissing):
            orchestrator.select_host(orchestrator.resolve("git"))

    def test_version_mismatch_warns(self):
        ssh = host_ssh(
            reachable_hosts=("10.0.0.1",),
            authenticated_hosts=("10.0.0.1",),
            unison_hosts=("10.0.0.1",),
            remote_version="unison version 2.51.5",
        )
        orchestrator = self.orchestrator(ssh)

        assert orchestrator.select_host(orchestrator.resolve("git")) == "10.0.0.1"
        assert orchestrator.warnings == ["Unison version mismatch: local 2.53.3, 10.0.0.1 2.51.5"]


def _contend_for_lock(pref_dir, barrier, results):
    """Child process body: take the lock at the same moment as its siblings."""
    lock = ProfileLock(pref_dir, "git_sync")
    barrier.wait()
    try:
        lock.acquire()
    except ProfileLocked:
        results.put(False)
        return
    results.put(True)
    time.sleep(0.5)
    lock.release()


class TestProfileLock:
    """Test per-profile lock files."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.lock_path = Path(self.temp_dir) / "git_sync.lock"

    def teardown_method(self):
        """Clean up test environment."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_acquire_and_release(self):
        with ProfileLock(self.temp_dir, "git_sync") as lock:
            assert lock.path == self.lock_path
            assert self.lock_path.read_text().strip() == str(os.getpid())
        assert not self.lock_path.exists()

    @patch("hostsync.core.locking.psutil.pid_exists", return_value=True)
    def test_live_holder_blocks(self, mock_exists):
        self.lock_path.write_text("424242\n")

        with pytest.raises(ProfileLocked) as exc_info:
            ProfileLock(self.temp_dir, "git_sync").acquire()

        assert exc_info.value.pid == 424242
        assert self.lock_path.read_text() == "424242\n"

    @patch("hostsync.core.locking.psutil.pid_exists", return_value=False)
    def test_stale_lock_replaced(self, mock_exists):
        self.lock_path.write_text("424242\n")

        lock = ProfileLock(self.temp_dir, "git_sync")
        lock.acquire()

        assert self.lock_path.read_text().strip() == str(os.getpid())
        lock.release()

    def test_garbage_lock_is_stale(self):
        self.lock_path.write_text("not a pid")
        assert ProfileLock(self.temp_dir, "git_sync").holder() is None

    def test_creates_missing_pref_dir(self):
        pref_dir = os.path.join(self.temp_dir, "new", "prefs")
        with ProfileLock(pref_dir, "git_sync") as lock:
            assert lock.path.is_file()

    @pytest.mark.skipif(
        "fork" not in multiprocessing.get_all_start_methods(), reason="needs fork"
    )
    def test_concurrent_processes_only_one_acquires(self):
        ctx = multiprocessing.get_context("fork")
        barrier = ctx.Barrier(4)
        results = ctx.Queue()
        workers = [
            ctx.Process(target=_contend_for_lock, args=(self.temp_dir, barrier, results))
            for _ in range(4)
        ]
        for worker in workers:
            worker.start()
        outcomes = [results.get(timeout=10) for _ in workers]
        for worker in workers:
            worker.join(timeout=10)

        assert outcomes.count(True) == 1
        assert not self.lock_path.exists()


class TestRunCommand:
    """Test running a named command end to end."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.store = ConfigStore(pointer_path=os.path.join(self.temp_dir, "pointer"))
        self.config = self.store.parse(config_text(self.temp_dir))
        self.profile = Path(self.temp_dir) / "prefs" / "git_sync.prf"

    def teardown_method(self):
        """Clean up test environment."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    @patch("hostsync.core.unison_runner.subprocess.Popen")
    @patch("hostsync.core.unison_runner.shutil.which", return_value="/usr/bin/unison")
    def test_dry_run(self, mock_which, mock_popen):
        ssh_factory = Mock()
        orchestrator = SyncOrchestrator(self.config, config_store=self.store, ssh_factory=ssh_factory)

        result = orchestrator.run_command("git", RunOptions(dry_run=True, extra_args=["-path", "src"]))

        mock_popen.assert_not_called()
        ssh_factory.assert_not_called()
        assert result.status == RunStatus.DRY_RUN
        assert result.host == "10.0.0.1"
        assert result.roots == ["/home/x/git", "ssh://alice@10.0.0.1//home/x/git"]
        assert "ssh://" not in result.command
        assert "-batch" in result.command
        assert "-prefer newer" in result.command
        assert "-auto" in result.command
        assert result.command.endswith("-maxsizethreshold 100000 -path src")
        assert self.profile.is_file()
        assert not (Path(self.temp_dir) / "prefs" / "git_sync.lock").exists()

    @patch("hostsync.core.unison_runner.subprocess.Popen")
    @patch("hostsync.core.unison_runner.shutil.which", return_value="/usr/bin/unison")
    def test_locked_profile_is_not_run(self, mock_which, mock_popen):
        ssh = host_ssh(("10.0.0.1",), ("10.0.0.1",), ("10.0.0.1",))
        orchestrator = SyncOrchestrator(
            self.config,
            config_store=self.store,
            ssh_factory=Mock(return_value=ssh),
            local_shell=FakeShell([("-version", True, VERSION)]),
        )
        lock_path = Path(self.temp_dir) / "prefs" / "git_sync.lock"
        lock_path.parent.mkdir(parents=True)
        lock_path.write_text("424242\n")

        with patch("hostsync.core.locking.psutil.pid_exists", return_value=True):
            with pytest.raises(ProfileLocked):
                orchestrator.run_command("git")

        mock_popen.assert_not_called()
        assert not self.profile.exists()

    @patch("hostsync.core.unison_runner.subprocess.Popen")
    @patch("hostsync.core.unison_runner.shutil.which", return_value="/usr/bin/unison")
    def test_successful_run_releases_lock(self, mock_which, mock_popen):
        process = Mock()
        process.stdout = io.StringIO("Copying a.txt --> remote\n")
        process.wait.return_value = 0
        mock_popen.return_value = process

        ssh = host_ssh(("10.0.0.1",), ("10.0.0.1",), ("10.0.0.1",))
        orchestrator = SyncOrchestrator(
            self.config,
            config_store=self.store,
            ssh_factory=Mock(return_value=ssh),
            local_shell=FakeShell([("-version", True, VERSION)]),
        )

        result = orchestrator.run_command("git")

        assert result.status == RunStatus.SUCCESS
        assert result.files_processed == 1
        assert result.host == "10.0.0.1"
        assert self.profile.is_file()
        assert not (Path(self.temp_dir) / "prefs" / "git_sync.lock").exists()

        # unison rejects roots given both in the profile and on the command line
        declared = [
            line.split("=", 1)[1].strip()
            for line in self.profile.read_text().splitlines()
            if line.startswith("root")
        ]
        argv = mock_popen.call_args.args[0]
        assert declared == ["/home/x/git", "ssh://alice@10.0.0.1//home/x/git"]
        assert argv[:3] == ["/usr/bin/unison", "git_sync", "-batch"]
        assert not set(declared) & set(argv)
