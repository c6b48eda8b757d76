"""Filesystem helpers shared by the config store and profile generator."""

import logging
import os
import tempfile
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


def atomic_write(path: Union[str, Path], content: str, mode: int = 0o644) -> Path:
    """Write ``content`` to ``path`` so readers never see a partial file.

    The parent directory is created if needed. Data goes to a temporary file
    in the same directory which is then renamed over the target.
    """
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, target)
        logger.debug(f"Wrote {target}")
    finally:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)

    return target


def exclusive_write(path: Union[str, Path], content: str, mode: int = 0o644) -> bool:
    """Create ``path`` with ``content`` only if it does not exist yet.

    The complete file is hard-linked into place, so a reader that finds
    ``path`` always sees the full content. Returns False if it already exists.
    """
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(tmp_name, mode)
        try:
            os.link(tmp_name, target)
        except FileExistsError:
            return False
    finally:
        os.unlink(tmp_name)

    logger.debug(f"Created {target}")
    return True


def expand_path(value: str) -> str:
    """Expand ``~`` and environment variables the way the shell would."""
    return os.path.expanduser(os.path.expandvars(value))
