"""Per-profile lock files so two runs never drive the same profile at once."""

import logging
import os
from pathlib import Path
from typing import Optional

import psutil

from .exceptions import ProfileLocked
from .fsutil import exclusive_write


class ProfileLock:
    """PID lock file at ``<pref_dir>/<profile>.lock``.

    The file is created exclusively, so only one process can win a race for
    it. A lock left behind by a process that no longer exists is considered
    stale and replaced. Use as a context manager.
    """

    def __init__(self, pref_dir: str, profile: str):
        self.profile = profile
        self.path = Path(pref_dir).expanduser() / f"{profile}.lock"
        self.logger = logging.getLogger(__name__)
        self._held = False

    def holder(self) -> Optional[int]:
        """PID of the live process holding the lock, if any."""
        try:
            pid = int(self.path.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            return None

        if pid == os.getpid() or not psutil.pid_exists(pid):
            return None
        return pid

    def acquire(self) -> None:
        """Take the lock.

        Raises:
            ProfileLocked: If another live process holds it
        """
        if not exclusive_write(self.path, f"{os.getpid()}\n"):
            pid = self.holder()
            if pid is not None:
                raise ProfileLocked(self.profile, pid, str(self.path))

            self.logger.info(f"Replacing stale lock {self.path}")
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
            # Another process may have replaced the stale lock first
            if not exclusive_write(self.path, f"{os.getpid()}\n"):
                raise ProfileLocked(self.profile, self.holder() or 0, str(self.path))

        self._held = True
        self.logger.debug(f"Acquired {self.path}")

    def release(self) -> None:
        if not self._held:
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        self._held = False
        self.logger.debug(f"Released {self.path}")

    def __enter__(self) -> "ProfileLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
