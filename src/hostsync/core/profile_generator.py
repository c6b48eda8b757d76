"""
Unison profile generation for hostsync.

A profile (``<pref_dir>/<name>.prf``) is rebuilt from the resolved command
before every run. The content depends only on the inputs, so generating the
same profile twice yields byte-identical files.
"""

import logging
from pathlib import Path
from typing import List, Optional

from .fsutil import atomic_write
from .models import IgnoreRule, RemoteRoot, ResolvedCommand
from .templates import BUILTIN_PROFILE_IGNORES


class ProfileGenerator:
    """Renders unison preference files."""

    def __init__(self, pref_dir: str):
        """Initialize the generator.

        Args:
            pref_dir: Unison preferences directory profiles are written to
        """
        self.pref_dir = Path(pref_dir).expanduser()
        self.logger = logging.getLogger(__name__)

    def profile_path(self, profile_name: str) -> Path:
        """Path of the ``.prf`` file for a profile name."""
        return self.pref_dir / f"{profile_name}.prf"

    def render(
        self,
        profile_name: str,
        local_path: str,
        remote: RemoteRoot,
        ignore_rules: List[IgnoreRule],
    ) -> str:
        """Render profile content without touching the filesystem."""
        lines = [
            f"# Unison profile generated by hostsync for '{profile_name}'.",
            "# Regenerated before every run; local edits are overwritten.",
            f"label = {profile_name}",
            f"root = {local_path}",
            f"root = {remote.url}",
            "batch = true",
            "fastcheck = true",
            "confirmbigdel = true",
            "sshargs = -o BatchMode=yes",
            "",
            "# Built-in exclusions",
        ]
        lines.extend(rule.to_preference() for rule in BUILTIN_PROFILE_IGNORES)
        lines.append("")
        lines.append("# Ignore file rules")
        lines.extend(rule.to_preference() for rule in ignore_rules)
        return "\n".join(lines) + "\n"

    def generate(
        self,
        profile_name: str,
        local_path: str,
        remote: RemoteRoot,
        ignore_rules: List[IgnoreRule],
    ) -> Path:
        """Write the profile and return its path.

        Creates the preferences directory if it does not exist.
        """
        content = self.render(profile_name, local_path, remote, ignore_rules)
        path = self.profile_path(profile_name)
        atomic_write(path, content)
        self.logger.debug(f"Generated profile {path}")
        return path

    def generate_for_command(
        self,
        command: ResolvedCommand,
        host: str,
        ignore_rules: List[IgnoreRule],
        profile_name: Optional[str] = None,
    ) -> Path:
        """Generate the profile for a resolved command against one host."""
        remote = RemoteRoot(user=command.remote_user, host=host, path=command.remote_path)
        return self.generate(
            profile_name or command.profile_name,
            command.local_path,
            remote,
            ignore_rules,
        )
