#!/usr/bin/env python3
"""
Tests for applying bootstrap changes.
"""

import os
import shutil
import sys
import tempfile
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add src to path for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from fakes import FakeShell

from hostsync.core.bootstrapper import Bootstrapper
from hostsync.core.config_store import ConfigStore
from hostsync.core.exceptions import HostUnreachable
from hostsync.core.host_inspector import (
    CONFIG_FILE,
    HOST_UNREACHABLE,
    IGNORE_FILE,
    MAN_PAGE,
    PACKAGE_MANAGER,
    PREF_DIR,
    SHELL_PATH,
    SSH_CLIENT,
    SSH_KEY,
    UNISON,
    HostInspector,
    HostPaths,
)
from hostsync.core.models import (
    BootstrapStatus,
    Finding,
    HostState,
    HostTarget,
    ProbeStage,
    StepStatus,
)
from hostsync.core.templates import IGNORE_TEMPLATE


def finding(key):
    return Finding(key=key, description=f"fix {key}")


def linux_state(*keys, distro="ubuntu", os_family="Linux", host="localhost", is_local=True):
    return HostState(
        host=host,
        is_local=is_local,
        stage=ProbeStage.REPORTED,
        os_family=os_family,
        distro=distro,
        missing=[finding(k) for k in keys],
    )


class TestBootstrapper:
    """Test confirmation, step ordering and failure handling."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.paths = HostPaths(
            pref_dir=os.path.join(self.temp_dir, "prefs"),
            config_dir=os.path.join(self.temp_dir, "cfg"),
            config_file=os.path.join(self.temp_dir, "cfg", "config"),
            ignore_file=os.path.join(self.temp_dir, "cfg", "ignore"),
            unison_path="/usr/bin/unison",
        )
        self.store = ConfigStore(pointer_path=os.path.join(self.temp_dir, "pointer"))
        self.target = HostTarget()

    def teardown_method(self):
        """Clean up test environment."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def make(self, responses=(), confirm=None, paths=None):
        self.shell = FakeShell(list(responses))
        inspector = HostInspector(local_paths=paths or self.paths, local_shell=self.shell)
        return Bootstrapper(inspector, config_store=self.store, confirm=confirm)

    def test_nothing_missing_never_asks(self):
        confirm = Mock(return_value=True)
        result = self.make(confirm=confirm).apply(self.target, linux_state())

        assert result.status == BootstrapStatus.ALREADY_BOOTSTRAPPED
        confirm.assert_not_called()
        assert self.shell.commands == []

    def test_declined_changes_nothing(self):
        confirm = Mock(return_value=False)
        state = linux_state(UNISON, SSH_KEY)
        result = self.make(confirm=confirm).apply(self.target, state)

        assert result.status == BootstrapStatus.CANCELLED
        assert result.success
        confirm.assert_called_once_with(state.missing)
        assert self.shell.commands == []

    def test_interrupted_confirmation_declines(self):
        confirm = Mock(side_effect=KeyboardInterrupt)
        result = self.make(confirm=confirm).apply(self.target, linux_state(UNISON))
        assert result.status == BootstrapStatus.CANCELLED

        confirm = Mock(side_effect=EOFError)
        result = self.make(confirm=confirm).apply(self.target, linux_state(UNISON))
        assert result.status == BootstrapStatus.CANCELLED

    def test_no_confirm_callback_declines(self):
        result = self.make().apply(self.target, linux_state(UNISON))
        assert result.status == BootstrapStatus.CANCELLED

    def test_connectivity_state_raises(self):
        confirm = Mock(return_value=True)
        state = HostState(
            host="10.255.255.1",
            is_local=False,
            stage=ProbeStage.REPORTED,
            reachable=False,
            missing=[finding(HOST_UNREACHABLE)],
        )
        with pytest.raises(HostUnreachable):
            self.make(confirm=confirm).apply(HostTarget(host="10.255.255.1", is_local=False), state)
        confirm.assert_not_called()

    def test_planned_step_order(self):
        state = linux_state(SHELL_PATH, SSH_KEY, UNISON, CONFIG_FILE, PACKAGE_MANAGER)
        assert self.make().planned_steps(state) == [
            "package-manager", "unison", "files", "ssh-key", "shell-path",
        ]

    def test_failed_steps_do_not_stop_later_steps(self):
        bootstrapper = self.make(
            responses=[
                ("apt-get", False, "E: Unable to locate package unison"),
                ("ssh-keygen", True, ""),
                ("hostsync.1", False, "sudo: a password is required"),
            ],
            confirm=lambda findings: True,
        )
        result = bootstrapper.apply(self.target, linux_state(MAN_PAGE, UNISON, SSH_KEY))

        assert result.status == BootstrapStatus.FAILED
        assert not result.success
        assert [s.name for s in result.steps] == ["unison", "ssh-key", "man-page"]
        assert [s.name for s in result.failed_steps] == ["unison", "man-page"]
        assert "Unable to locate package" in result.steps[0].output
        assert result.steps[1].status == StepStatus.OK
        assert "password is required" in result.steps[2].output

    def test_unison_and_ssh_client_installed_together(self):
        bootstrapper = self.make(responses=[("apt-get", True, "done")], confirm=lambda f: True)
        result = bootstrapper.apply(self.target, linux_state(UNISON, SSH_CLIENT))

        assert result.status == BootstrapStatus.COMPLETED
        assert self.shell.commands == [
            "sudo apt-get update && sudo apt-get install -y unison openssh-client"
        ]

    def test_unsupported_distribution(self):
        bootstrapper = self.make(confirm=lambda f: True)
        result = bootstrapper.apply(self.target, linux_state(UNISON, distro="slackware"))

        assert result.status == BootstrapStatus.FAILED
        assert "Unsupported distribution: slackware" in result.steps[0].output
        assert self.shell.commands == []

    def test_homebrew_installed_on_macos(self):
        bootstrapper = self.make(
            responses=[("Homebrew/install", True, "Installation successful!")],
            confirm=lambda f: True,
        )
        result = bootstrapper.apply(self.target, linux_state(PACKAGE_MANAGER, os_family="Darwin", distro=None))

        assert result.status == BootstrapStatus.COMPLETED
        assert result.steps[0].output == "Installation successful!"

    def test_linux_package_manager_must_be_installed_by_hand(self):
        result = self.make(confirm=lambda f: True).apply(self.target, linux_state(PACKAGE_MANAGER))

        assert result.status == BootstrapStatus.FAILED
        assert "install it manually" in result.steps[0].output

    def test_local_files_created(self):
        bootstrapper = self.make(confirm=lambda f: True)
        result = bootstrapper.apply(self.target, linux_state(PREF_DIR, CONFIG_FILE, IGNORE_FILE))

        assert result.status == BootstrapStatus.COMPLETED
        assert os.path.isdir(self.paths.pref_dir)
        assert 'COMMAND="' in Path(self.paths.config_file).read_text()
        assert Path(self.paths.ignore_file).read_text() == IGNORE_TEMPLATE
        assert result.steps[0].output.startswith("Created ")

    def test_local_files_keep_existing_config(self):
        os.makedirs(self.paths.config_dir)
        Path(self.paths.config_file).write_text("mine")

        result = self.make(confirm=lambda f: True).apply(self.target, linux_state(PREF_DIR))

        assert result.status == BootstrapStatus.COMPLETED
        assert Path(self.paths.config_file).read_text() == "mine"

    def test_remote_files_written_over_shell(self):
        remote = FakeShell([("mkdir -p", True, ""), ("cat >", True, "")], host="10.0.0.9", is_local=False)
        ssh = Mock()
        ssh.execute_command.side_effect = (
            lambda host, command, input=None, timeout=600: remote.run(command, input=input)
        )
        inspector = HostInspector(local_shell=FakeShell([]), ssh_factory=Mock(return_value=ssh))
        bootstrapper = Bootstrapper(inspector, config_store=self.store, confirm=lambda f: True)

        state = linux_state(CONFIG_FILE, IGNORE_FILE, host="10.0.0.9", is_local=False)
        result = bootstrapper.apply(HostTarget(host="10.0.0.9", user="alice", is_local=False), state)

        assert result.status == BootstrapStatus.COMPLETED
        assert remote.commands[0] == 'mkdir -p "$HOME/.unison" "$HOME/.config/sync"'
        assert IGNORE_TEMPLATE in remote.inputs
        assert any(i and 'COMMAND="' in i for i in remote.inputs)

    def test_shell_path_step(self):
        paths = HostPaths(unison_path="/opt/tools/bin/unison")
        bootstrapper = self.make(responses=[("export PATH", True, "")], confirm=lambda f: True, paths=paths)

        result = bootstrapper.apply(self.target, linux_state(SHELL_PATH))

        assert result.status == BootstrapStatus.COMPLETED
        assert "/opt/tools/bin" in self.shell.commands[0]
