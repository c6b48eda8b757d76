"""
Bootstrap for hostsync.

Turns the missing prerequisites of a :class:`HostState` into changes on the
host. Nothing is changed without confirmation, steps run in a fixed order,
and a failed step does not stop the steps after it.
"""

import getpass
import logging
import shlex
from pathlib import Path
from typing import Callable, List, Optional

from ..__version__ import __version__
from .config_store import ConfigStore
from .exceptions import BootstrapStepFailed
from .fsutil import atomic_write, expand_path
from .host_inspector import (
    CONFIG_DIR,
    CONFIG_FILE,
    FILE_KEYS,
    IGNORE_FILE,
    MAN_PAGE,
    PACKAGE_MANAGER,
    SHELL_PATH,
    SHELL_RC_FILES,
    SSH_CLIENT,
    SSH_KEY,
    UNISON,
    HostInspector,
    HostPaths,
    Shell,
    connectivity_error,
    shell_path,
)
from .models import (
    BootstrapResult,
    BootstrapStatus,
    Finding,
    HostState,
    HostTarget,
    StepResult,
    StepStatus,
)
from .platforms import DARWIN, HOMEBREW_INSTALL_CMD, package_manager_for
from .templates import CONFIG_TEMPLATE, IGNORE_TEMPLATE, MAN_PAGE as MAN_PAGE_TEMPLATE

STEP_ORDER = ("package-manager", "unison", "files", "ssh-key", "man-page", "shell-path")

STEP_KEYS = {
    "package-manager": (PACKAGE_MANAGER,),
    "unison": (UNISON, SSH_CLIENT),
    "files": FILE_KEYS,
    "ssh-key": (SSH_KEY,),
    "man-page": (MAN_PAGE,),
    "shell-path": (SHELL_PATH,),
}

MAN_DIRS = ("/usr/local/share/man/man1", "/usr/share/man/man1")

# Homebrew is not on PATH in a fresh non-login shell
_BREW_PATH = 'export PATH="/opt/homebrew/bin:/usr/local/bin:$PATH"; '

_INSTALL_MAN_PAGE = """\
tmp=$(mktemp) || exit 1
cat > "$tmp"
rc=1
for dir in {dirs}; do
  if sudo install -d "$dir" && sudo install -m 644 "$tmp" "$dir/hostsync.1"; then
    rc=0
    break
  fi
done
rm -f "$tmp"
if [ $rc -eq 0 ]; then
  if command -v mandb >/dev/null 2>&1; then
    sudo mandb -q >/dev/null 2>&1 || true
  elif command -v makewhatis >/dev/null 2>&1; then
    sudo makewhatis >/dev/null 2>&1 || true
  fi
fi
exit $rc"""

_UPDATE_SHELL_PATH = """\
line={line}
found=0
for f in {rc_files}; do
  if [ -f "$f" ]; then
    found=1
    grep -qsF {entry} "$f" || printf '\\n%s\\n' "$line" >> "$f" || exit 1
  fi
done
[ $found -eq 1 ] || printf '%s\\n' "$line" > "$HOME/.profile"
"""


def _tool_output(result: dict) -> str:
    return "\n".join(part.strip() for part in (result["stdout"], result["stderr"]) if part.strip())


class Bootstrapper:
    """Applies bootstrap changes to the host described by a :class:`HostState`."""

    def __init__(
        self,
        inspector: HostInspector,
        config_store: Optional[ConfigStore] = None,
        confirm: Optional[Callable[[List[Finding]], bool]] = None,
    ):
        """Initialize the bootstrapper.

        Args:
            inspector: Supplies the shell and file locations for a target
            config_store: Writes the config and ignore templates locally
            confirm: Asked with the planned changes; anything but True declines
        """
        self.inspector = inspector
        self.config_store = config_store or ConfigStore()
        self.confirm = confirm
        self.logger = logging.getLogger(__name__)

    def planned_steps(self, state: HostState) -> List[str]:
        """Steps that will run for ``state``, in execution order."""
        missing = set(state.missing_keys)
        return [step for step in STEP_ORDER if missing.intersection(STEP_KEYS[step])]

    def _confirmed(self, findings: List[Finding]) -> bool:
        if self.confirm is None:
            return False
        try:
            return self.confirm(findings) is True
        except (KeyboardInterrupt, EOFError):
            return False

    def apply(self, target: HostTarget, state: HostState) -> BootstrapResult:
        """Apply every change ``state`` calls for.

        Raises:
            HostUnreachable: If ``state`` is a failed remote connectivity check
            AuthenticationFailed: Likewise, for a failed SSH login
        """
        error = connectivity_error(state, target.user)
        if error is not None:
            raise error

        if not state.missing:
            self.logger.info(f"{target.label} is already bootstrapped")
            return BootstrapResult(host=target.label, status=BootstrapStatus.ALREADY_BOOTSTRAPPED)

        if not self._confirmed(list(state.missing)):
            self.logger.info(f"Bootstrap of {target.label} cancelled")
            return BootstrapResult(host=target.label, status=BootstrapStatus.CANCELLED)

        shell = self.inspector.shell_for(target)
        paths = self.inspector.paths_for(target)
        steps: List[StepResult] = []

        for step in self.planned_steps(state):
            handler = getattr(self, "_step_" + step.replace("-", "_"))
            self.logger.info(f"Bootstrap step {step} on {target.label}")
            try:
                output = handler(shell, target, state, paths)
                steps.append(StepResult(name=step, status=StepStatus.OK, output=output or ""))
            except BootstrapStepFailed as e:
                self.logger.error(f"Bootstrap step {step} failed: {e.tool_output}")
                steps.append(StepResult(name=step, status=StepStatus.FAILED, output=e.tool_output))

        failed = any(s.status == StepStatus.FAILED for s in steps)
        status = BootstrapStatus.FAILED if failed else BootstrapStatus.COMPLETED
        return BootstrapResult(host=target.label, status=status, steps=steps)

    def _run(self, shell: Shell, step: str, command: str, input: Optional[str] = None) -> str:
        result = shell.run(command, input=input)
        output = _tool_output(result)
        if not result["success"]:
            raise BootstrapStepFailed(step, output or f"exit code {result['returncode']}")
        return output

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _step_package_manager(self, shell, target, state, paths) -> str:
        if state.os_family == DARWIN:
            return self._run(shell, "package-manager", HOMEBREW_INSTALL_CMD)

        pm = package_manager_for(state.os_family, state.distro)
        name = pm.binary if pm else "a package manager"
        raise BootstrapStepFailed(
            "package-manager",
            f"{name} is not installed on {state.distro or state.os_family}; install it manually",
        )

    def _step_unison(self, shell, target, state, paths) -> str:
        pm = package_manager_for(state.os_family, state.distro)
        if pm is None:
            raise BootstrapStepFailed(
                "unison",
                f"Unsupported distribution: {state.distro or state.os_family or 'unknown'}; "
                "install unison manually",
            )

        packages = []
        if state.has_missing(UNISON):
            packages.append(pm.unison_packages)
        if state.has_missing(SSH_CLIENT):
            packages.append(pm.ssh_packages)

        command = f"{pm.update_cmd} && {pm.install_cmd} {' '.join(packages)}"
        if state.os_family == DARWIN:
            command = _BREW_PATH + command
        return self._run(shell, "unison", command)

    def _step_files(self, shell, target, state, paths: HostPaths) -> str:
        if target.is_local:
            created = []
            try:
                pref_dir = Path(expand_path(paths.pref_dir))
                if not pref_dir.is_dir():
                    pref_dir.mkdir(parents=True)
                    created.append(str(pref_dir))

                written = self.config_store.init(expand_path(paths.config_file))
                if written["config_written"]:
                    created.append(written["config_path"])
                if written["ignore_written"]:
                    created.append(written["ignore_path"])

                ignore_file = Path(expand_path(paths.ignore_file))
                if not ignore_file.exists():
                    atomic_write(ignore_file, IGNORE_TEMPLATE)
                    created.append(str(ignore_file))
            except OSError as e:
                raise BootstrapStepFailed("files", str(e)) from e
            return "Created " + ", ".join(created) if created else "Files already present"

        outputs = [self._run(
            shell, "files",
            f"mkdir -p {shell_path(paths.pref_dir)} {shell_path(paths.config_dir)}",
        )]
        if state.has_missing(CONFIG_FILE) or state.has_missing(CONFIG_DIR):
            config = CONFIG_TEMPLATE.format(
                remote_user=target.user or getpass.getuser(),
                unison_path=paths.unison_path,
                ignore_file=paths.ignore_file,
            )
            target_file = shell_path(paths.config_file)
            outputs.append(self._run(
                shell, "files", f"test -f {target_file} || cat > {target_file}", input=config
            ))
        if state.has_missing(IGNORE_FILE) or state.has_missing(CONFIG_DIR):
            target_file = shell_path(paths.ignore_file)
            outputs.append(self._run(
                shell, "files", f"test -f {target_file} || cat > {target_file}", input=IGNORE_TEMPLATE
            ))
        return "\n".join(o for o in outputs if o)

    def _step_ssh_key(self, shell, target, state, paths) -> str:
        return self._run(
            shell, "ssh-key",
            'mkdir -p "$HOME/.ssh" && chmod 700 "$HOME/.ssh" && '
            'ssh-keygen -t ed25519 -N "" -q -f "$HOME/.ssh/id_ed25519"',
        )

    def _step_man_page(self, shell, target, state, paths) -> str:
        script = _INSTALL_MAN_PAGE.format(dirs=" ".join(MAN_DIRS))
        return self._run(shell, "man-page", script, input=MAN_PAGE_TEMPLATE.format(version=__version__))

    def _step_shell_path(self, shell, target, state, paths: HostPaths) -> str:
        entry = paths.path_entry
        if entry is None:
            return ""
        script = _UPDATE_SHELL_PATH.format(
            line=shlex.quote(f'export PATH="{entry}:$PATH"'),
            rc_files=" ".join(f'"$HOME/{name}"' for name in SHELL_RC_FILES),
            entry=shlex.quote(entry),
        )
        return self._run(shell, "shell-path", script)
