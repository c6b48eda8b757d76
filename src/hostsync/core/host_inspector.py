"""
Host inspection for hostsync.

Probes the local machine or a remote host for everything a sync needs:
package manager, SSH client, unison, preference and config files, SSH keys,
shell PATH and the man page. Remote hosts are checked for reachability and
then for batch-mode SSH access before any other probe runs.
"""

import getpass
import logging
import os
import re
import shlex
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

from ..__version__ import MINIMUM_UNISON_VERSION
from .exceptions import AuthenticationFailed, HostSyncError, HostUnreachable
from .models import Finding, GlobalDefaults, HostState, HostTarget, ProbeStage
from .platforms import (
    DARWIN,
    DETECT_DISTRO_SCRIPT,
    HOMEBREW_INSTALL_CMD,
    LINUX,
    PackageManager,
    package_manager_for,
)
from .ssh_manager import LocalShell, RemoteShell, SSHManager

Shell = Union[LocalShell, RemoteShell]

# Finding keys
HOST_UNREACHABLE = "host-unreachable"
SSH_AUTH = "ssh-authentication"
PACKAGE_MANAGER = "package-manager"
SSH_CLIENT = "ssh-client"
UNISON = "unison"
PREF_DIR = "preferences-directory"
SSH_KEY = "ssh-key"
CONFIG_DIR = "config-directory"
CONFIG_FILE = "config-file"
IGNORE_FILE = "ignore-file"
SHELL_PATH = "shell-path"
MAN_PAGE = "man-page"

CONNECTIVITY_KEYS = (HOST_UNREACHABLE, SSH_AUTH)
FILE_KEYS = (PREF_DIR, CONFIG_DIR, CONFIG_FILE, IGNORE_FILE)

SHELL_RC_FILES = (".zshrc", ".bashrc", ".profile")

# Always on PATH, never worth an rc entry
_SYSTEM_PATH_DIRS = ("/bin", "/usr/bin")

_VERSION_NUMBER = re.compile(r"(\d+(?:\.\d+)+)")

_UNISON_VERSION_SCRIPT = (
    'for u in {candidates}; do '
    'if command -v "$u" >/dev/null 2>&1; then "$u" -version 2>/dev/null | head -n 1; exit 0; fi; '
    'done; exit 1'
)


def shell_path(path: str) -> str:
    """Quote a path for ``/bin/sh`` while letting ``$HOME`` and ``~`` expand."""
    if path == "~":
        return '"$HOME"'
    if path.startswith("~/"):
        path = "$HOME/" + path[2:]
    if "$" in path:
        return '"' + path.replace('"', '\\"') + '"'
    return shlex.quote(path)


def probe_unison_version(shell: Shell, unison_path: str, search_path: bool = True) -> Optional[str]:
    """First line of ``unison -version`` for ``unison_path``.

    With ``search_path`` any ``unison`` on PATH is accepted as a fallback.
    Returns None if no binary was found.
    """
    candidates = [unison_path, "unison"] if search_path else [unison_path]
    script = _UNISON_VERSION_SCRIPT.format(
        candidates=" ".join(shell_path(c) for c in dict.fromkeys(candidates))
    )
    result = shell.run(script, timeout=30)
    if not result["success"]:
        return None
    return result["stdout"].strip() or "unknown"


def version_number(version: Optional[str]) -> Optional[str]:
    """Extract ``2.53.3`` from ``unison version 2.53.3 (ocaml 4.14.1)``."""
    if not version:
        return None
    match = _VERSION_NUMBER.search(version)
    return match.group(1) if match else version.strip()


def older_than_minimum(version: Optional[str], minimum: str = MINIMUM_UNISON_VERSION) -> bool:
    """True if ``version`` parses and sorts below ``minimum``."""
    number = version_number(version)
    if not number or not _VERSION_NUMBER.fullmatch(number):
        return False
    return tuple(map(int, number.split("."))) < tuple(map(int, minimum.split(".")))


@dataclass
class HostPaths:
    """Where a host keeps its hostsync files.

    Values may contain ``$HOME`` or ``~``; they
    are expanded by the shell on the inspected host. The defaults describe
    a host that has never been configured.
    """

    pref_dir: str = "$HOME/.unison"
    config_dir: str = "$HOME/.config/sync"
    config_file: str = "$HOME/.config/sync/config"
    ignore_file: str = "$HOME/.config/sync/ignore"
    unison_path: str = "unison"

    @property
    def path_entry(self) -> Optional[str]:
        """Directory the shell PATH must contain for ``unison_path``."""
        entry = os.path.dirname(self.unison_path)
        if not entry or entry in _SYSTEM_PATH_DIRS:
            return None
        return entry

    @classmethod
    def for_local(
        cls,
        config_path: str,
        defaults: Optional[GlobalDefaults] = None,
        unison_path: Optional[str] = None,
    ) -> "HostPaths":
        """Paths on this machine, from the active config when it loaded."""
        config_dir = os.path.dirname(config_path)
        if defaults is None:
            return cls(
                config_dir=config_dir,
                config_file=config_path,
                ignore_file=os.path.join(config_dir, "ignore"),
                unison_path=unison_path or "unison",
            )
        return cls(
            pref_dir=defaults.pref_dir,
            config_dir=config_dir,
            config_file=config_path,
            ignore_file=defaults.ignore_file,
            unison_path=unison_path or defaults.unison_path,
        )


@dataclass
class _Report:
    """Findings accumulated while checks run."""

    installed: List[str] = field(default_factory=list)
    missing: List[Finding] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def check(self, ok: bool, name: str, finding: Finding) -> bool:
        if ok:
            self.installed.append(name)
        else:
            self.missing.append(finding)
        return ok


def connectivity_error(state: HostState, user: Optional[str] = None) -> Optional[HostSyncError]:
    """The exception matching a short-circuited inspection, if any."""
    if state.has_missing(HOST_UNREACHABLE):
        return HostUnreachable(state.host, state.connectivity_output)
    if state.has_missing(SSH_AUTH):
        return AuthenticationFailed(state.host, user or getpass.getuser(), state.connectivity_output)
    return None


class HostInspector:
    """Produces a :class:`HostState` for a local or remote target."""

    def __init__(
        self,
        local_paths: Optional[HostPaths] = None,
        remote_paths: Optional[HostPaths] = None,
        local_shell: Optional[LocalShell] = None,
        ssh_factory: Callable[[str], SSHManager] = SSHManager,
    ):
        """Initialize the inspector.

        Args:
            local_paths: File locations on this machine
            remote_paths: File locations expected on remote hosts
            local_shell: Shell used for local probes
            ssh_factory: Builds an :class:`SSHManager` for a remote user
        """
        self.local_paths = local_paths or HostPaths()
        self.remote_paths = remote_paths or HostPaths()
        self.local_shell = local_shell or LocalShell()
        self.ssh_factory = ssh_factory
        self.logger = logging.getLogger(__name__)

    def paths_for(self, target: HostTarget) -> HostPaths:
        return self.local_paths if target.is_local else self.remote_paths

    def shell_for(self, target: HostTarget) -> Shell:
        """Shell for running commands on ``target``. Does not test connectivity."""
        if target.is_local:
            return self.local_shell
        ssh = self.ssh_factory(target.user or getpass.getuser())
        return RemoteShell(ssh, target.host)

    def inspect(self, target: HostTarget) -> HostState:
        """Probe ``target`` and return its state.

        For a remote target a reachability or authentication failure ends
        the inspection: the returned state is ``REPORTED`` with only the
        connectivity fields set.
        """
        self.logger.info(f"Inspecting {target.label}")
        stage = ProbeStage.UNPROBED
        connectivity_output = None

        if target.is_local:
            shell: Shell = self.local_shell
        else:
            ssh = self.ssh_factory(target.user or getpass.getuser())

            reach = ssh.check_reachable(target.host)
            stage = ProbeStage.REACHABILITY_CHECKED
            if not reach["reachable"]:
                return self._unreachable(target, reach["output"])

            conn = ssh.test_connection(target.host)
            if not conn["authenticated"]:
                if conn["unreachable"]:
                    return self._unreachable(target, conn["output"])
                return self._auth_failed(target, ssh.user, conn["output"])

            stage = ProbeStage.SHELL_ACCESS_VERIFIED
            connectivity_output = conn["output"]
            shell = RemoteShell(ssh, target.host)

        self.logger.debug(f"{target.label}: {stage.value}")
        state = self._run_checks(shell, target, self.paths_for(target))
        self.logger.debug(f"{target.label}: {ProbeStage.CHECKS_RUN.value}")

        return state.model_copy(update={
            "stage": ProbeStage.REPORTED,
            "connectivity_output": connectivity_output,
        })

    def _unreachable(self, target: HostTarget, output: str) -> HostState:
        self.logger.warning(f"{target.host} is unreachable")
        return HostState(
            host=target.host,
            is_local=False,
            stage=ProbeStage.REPORTED,
            reachable=False,
            missing=[Finding(
                key=HOST_UNREACHABLE,
                description=f"Host {target.host} does not answer on the network",
                remediation="Check the address, VPN and firewall, and that sshd is running",
            )],
            connectivity_output=output,
        )

    def _auth_failed(self, target: HostTarget, user: str, output: str) -> HostState:
        self.logger.warning(f"SSH authentication to {user}@{target.host} failed")
        return HostState(
            host=target.host,
            is_local=False,
            stage=ProbeStage.REPORTED,
            reachable=True,
            authenticated=False,
            missing=[Finding(
                key=SSH_AUTH,
                description=f"Passwordless SSH login as {user} is not set up",
                remediation=f"ssh-copy-id {user}@{target.host}",
            )],
            connectivity_output=output,
        )

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _run_checks(self, shell: Shell, target: HostTarget, paths: HostPaths) -> HostState:
        report = _Report()

        os_family = target.os_family or self.detect_os(shell)
        distro = target.distro
        if os_family == LINUX and not distro:
            distro = self.detect_distro(shell)

        pm = self._check_package_manager(shell, os_family, distro, report)
        self._check_ssh_client(shell, pm, report)
        unison_version = self._check_unison(shell, paths.unison_path, pm, report)
        if older_than_minimum(unison_version):
            report.warnings.append(
                f"Unison {version_number(unison_version)} on {target.host} is older than "
                f"the supported minimum {MINIMUM_UNISON_VERSION}"
            )

        local_version = None
        if not target.is_local and unison_version:
            local_version = probe_unison_version(self.local_shell, self.local_paths.unison_path)
            if local_version and version_number(local_version) != version_number(unison_version):
                report.warnings.append(
                    f"Unison version mismatch: local {version_number(local_version)}, "
                    f"{target.host} {version_number(unison_version)}"
                )

        self._check_files(shell, paths, report)
        self._check_ssh_keys(shell, report)
        self._check_shell_path(shell, paths, report)
        self._check_man_page(shell, report)

        return HostState(
            host=target.host,
            is_local=target.is_local,
            stage=ProbeStage.CHECKS_RUN,
            os_family=os_family,
            distro=distro,
            reachable=True,
            authenticated=True,
            unison_version=unison_version,
            local_unison_version=local_version,
            installed=report.installed,
            missing=report.missing,
            warnings=report.warnings,
        )

    def detect_os(self, shell: Shell) -> Optional[str]:
        result = shell.run("uname -s")
        if not result["success"]:
            return None
        return result["stdout"].strip() or None

    def detect_distro(self, shell: Shell) -> Optional[str]:
        result = shell.run(DETECT_DISTRO_SCRIPT)
        distro = result["stdout"].strip().lower()
        return distro or None

    def _has_command(self, shell: Shell, name: str) -> bool:
        return shell.run(f"command -v {shlex.quote(name)} >/dev/null 2>&1")["success"]

    def _check_package_manager(
        self, shell: Shell, os_family: Optional[str], distro: Optional[str], report: _Report
    ) -> Optional[PackageManager]:
        pm = package_manager_for(os_family, distro)
        if pm is None:
            if os_family == LINUX:
                report.warnings.append(
                    f"Unsupported Linux distribution: {distro or 'unknown'}; install unison manually"
                )
            else:
                report.warnings.append(
                    f"Unsupported operating system: {os_family or 'unknown'}; install unison manually"
                )
            return None

        remediation = HOMEBREW_INSTALL_CMD if os_family == DARWIN else f"Install {pm.binary}"
        report.check(
            self._has_command(shell, pm.binary),
            f"package-manager ({pm.name})",
            Finding(key=PACKAGE_MANAGER, description=f"Install {pm.name}", remediation=remediation),
        )
        return pm

    def _check_ssh_client(self, shell: Shell, pm: Optional[PackageManager], report: _Report) -> None:
        remediation = f"{pm.install_cmd} {pm.ssh_packages}" if pm else "Install the OpenSSH client manually"
        report.check(
            self._has_command(shell, "ssh"),
            "ssh",
            Finding(key=SSH_CLIENT, description="Install the OpenSSH client", remediation=remediation),
        )

    def _check_unison(
        self, shell: Shell, unison_path: str, pm: Optional[PackageManager], report: _Report
    ) -> Optional[str]:
        version = probe_unison_version(shell, unison_path)
        remediation = f"{pm.install_cmd} {pm.unison_packages}" if pm else "Install unison manually"
        report.check(
            version is not None,
            f"unison ({version_number(version)})" if version else "unison",
            Finding(key=UNISON, description="Install unison", remediation=remediation),
        )
        return version

    def _check_files(self, shell: Shell, paths: HostPaths, report: _Report) -> None:
        checks: Dict[str, tuple] = {
            PREF_DIR: ("-d", paths.pref_dir, "Create the unison preferences directory"),
            CONFIG_DIR: ("-d", paths.config_dir, "Create the hostsync config directory"),
            CONFIG_FILE: ("-f", paths.config_file, "Write the default hostsync config"),
            IGNORE_FILE: ("-f", paths.ignore_file, "Write the default ignore file"),
        }
        for key, (flag, path, description) in checks.items():
            exists = shell.run(f"test {flag} {shell_path(path)}")["success"]
            report.check(
                exists,
                key,
                Finding(key=key, description=f"{description} ({path})", remediation="hostsync bootstrap"),
            )

    def _check_ssh_keys(self, shell: Shell, report: _Report) -> None:
        exists = shell.run('test -f "$HOME/.ssh/id_rsa" || test -f "$HOME/.ssh/id_ed25519"')["success"]
        report.check(
            exists,
            SSH_KEY,
            Finding(
                key=SSH_KEY,
                description="Generate an SSH key pair",
                remediation="ssh-keygen -t ed25519",
            ),
        )

    def _check_shell_path(self, shell: Shell, paths: HostPaths, report: _Report) -> None:
        entry = paths.path_entry
        if entry is None:
            report.installed.append(SHELL_PATH)
            return

        rc_files = " ".join(f'"$HOME/{name}"' for name in SHELL_RC_FILES)
        present = shell.run(f"ls {rc_files} 2>/dev/null")["stdout"].split()
        referenced = bool(present) and shell.run(
            f"grep -qsF {shlex.quote(entry)} {rc_files}"
        )["success"]

        if present:
            description = f"Add {entry} to PATH in {', '.join(os.path.basename(p) for p in present)}"
        else:
            description = f"Create ~/.profile adding {entry} to PATH"
        report.check(
            referenced,
            SHELL_PATH,
            Finding(key=SHELL_PATH, description=description, remediation=f'export PATH="{entry}:$PATH"'),
        )

    def _check_man_page(self, shell: Shell, report: _Report) -> None:
        report.check(
            shell.run("man -w hostsync >/dev/null 2>&1")["success"],
            MAN_PAGE,
            Finding(
                key=MAN_PAGE,
                description="Install the hostsync(1) man page",
                remediation="hostsync bootstrap localhost",
            ),
        )
