"""
Sync Orchestrator for hostsync

This module coordinates a named-command run: resolve the command, load the
ignore rules, pick a host, regenerate the unison profile and run unison.
"""

import logging
from typing import Callable, List, Optional

from .config_store import ConfigStore
from .exceptions import (
    AuthenticationFailed,
    DependencyMissing,
    HostSyncError,
    HostUnreachable,
)
from .host_inspector import probe_unison_version, version_number
from .locking import ProfileLock
from .models import (
    CommandOverrides,
    Configuration,
    RemoteRoot,
    ResolvedCommand,
    RunOptions,
    RunResult,
)
from .profile_generator import ProfileGenerator
from .ssh_manager import LocalShell, RemoteShell, SSHManager
from .unison_runner import ProgressReporter, SyncRunner


class SyncOrchestrator:
    """Runs named commands from a loaded :class:`Configuration`."""

    def __init__(
        self,
        config: Configuration,
        config_store: Optional[ConfigStore] = None,
        reporter: Optional[ProgressReporter] = None,
        ssh_factory: Callable[[str], SSHManager] = SSHManager,
        local_shell: Optional[LocalShell] = None,
    ):
        """Initialize the sync orchestrator."""
        self.config = config
        self.config_store = config_store or ConfigStore()
        self.reporter = reporter or ProgressReporter()
        self.ssh_factory = ssh_factory
        self.local_shell = local_shell or LocalShell()
        self.warnings: List[str] = []
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config_file(
        cls, config_path: Optional[str] = None, config_store: Optional[ConfigStore] = None, **kwargs
    ) -> "SyncOrchestrator":
        """Create orchestrator from configuration file."""
        store = config_store or ConfigStore()
        config = store.load(config_path)
        return cls(config, config_store=store, **kwargs)

    def resolve(self, name: str, overrides: Optional[CommandOverrides] = None) -> ResolvedCommand:
        return self.config_store.resolve_command(self.config, name, overrides)

    def select_host(self, command: ResolvedCommand, dry_run: bool = False) -> str:
        """Pick the first host that is reachable, accepts SSH and has unison.

        A dry run takes the first configured host without probing.

        Raises:
            HostUnreachable, AuthenticationFailed, DependencyMissing: The
                failure of the last host tried when none qualifies
        """
        if dry_run:
            return command.remote_hosts[0]

        ssh = self.ssh_factory(command.remote_user)
        last_error: Optional[HostSyncError] = None

        for host in command.remote_hosts:
            self.logger.info(f"Checking {command.remote_user}@{host}")

            reach = ssh.check_reachable(host)
            if not reach["reachable"]:
                last_error = HostUnreachable(host, reach["output"])
                continue

            conn = ssh.test_connection(host)
            if not conn["authenticated"]:
                if conn["unreachable"]:
                    last_error = HostUnreachable(host, conn["output"])
                else:
                    last_error = AuthenticationFailed(host, command.remote_user, conn["output"])
                continue

            remote_version = probe_unison_version(
                RemoteShell(ssh, host), command.remote_unison_path, search_path=False
            )
            if remote_version is None:
                last_error = DependencyMissing(
                    f"Unison not found at {command.remote_unison_path} on {host}",
                    dependency_name="unison",
                    searched_path=command.remote_unison_path,
                )
                continue

            self._compare_versions(command, host, remote_version)
            self.logger.info(f"Using host {host}")
            return host

        self.logger.error(f"No usable host for command '{command.name}'")
        raise last_error

    def _compare_versions(self, command: ResolvedCommand, host: str, remote_version: str) -> None:
        local_version = probe_unison_version(
            self.local_shell, command.unison_path, search_path=False
        )
        local, remote = version_number(local_version), version_number(remote_version)
        if local and remote and local != remote:
            message = f"Unison version mismatch: local {local}, {host} {remote}"
            self.logger.warning(message)
            self.warnings.append(message)

    def run_command(
        self,
        name: str,
        options: Optional[RunOptions] = None,
        overrides: Optional[CommandOverrides] = None,
    ) -> RunResult:
        """Run the named command end to end.

        Raises:
            CommandNotFound: If the config has no such command
            ConfigInvalid: If the command is incomplete after inheritance
            ProfileLocked: If another run holds this profile
            SyncFailed: If unison exits non-zero
        """
        options = options or RunOptions()
        command = self.resolve(name, overrides)
        ignore_rules = self.config_store.load_ignore_rules(command.ignore_file)
        host = self.select_host(command, options.dry_run)

        remote = RemoteRoot(user=command.remote_user, host=host, path=command.remote_path)
        run_options = options.model_copy(update={
            "extra_args": list(command.extra_options) + list(options.extra_args),
        })
        generator = ProfileGenerator(command.pref_dir)
        runner = SyncRunner(
            command.unison_path,
            remote_unison_path=command.remote_unison_path,
            pref_dir=command.pref_dir,
            reporter=self.reporter,
        )

        if options.dry_run:
            generator.generate_for_command(command, host, ignore_rules)
            result = runner.run(command.profile_name, run_options)
        else:
            with ProfileLock(command.pref_dir, command.profile_name):
                generator.generate_for_command(command, host, ignore_rules)
                result = runner.run(command.profile_name, run_options)

        return result.model_copy(update={"host": host, "roots": [command.local_path, remote.url]})
