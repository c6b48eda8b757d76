"""
hostsync - named two-way directory synchronization over SSH with unison

Keeps local directories in sync with copies on one or more remote hosts.
Each named command in the configuration binds a local path to a remote path,
a remote user and a list of candidate hosts; hostsync regenerates the unison
profile, picks the first usable host and runs unison in batch mode.

Key Features:
- Named sync commands with inherited global defaults
- Shared ignore-pattern file plus built-in exclusions
- Host selection with reachability and SSH checks
- Progress reporting from unison's own output
- Idempotent bootstrap of local and remote hosts
- Relocatable configuration via an indirection pointer

Example Usage:
    >>> from hostsync import SyncOrchestrator, RunOptions
    >>> orchestrator = SyncOrchestrator.from_config_file()
    >>> result = orchestrator.run_command("git", RunOptions(dry_run=True))
    >>> print(result.command)

CLI Usage:
    $ hostsync config init        # Write the default configuration
    $ hostsync bootstrap localhost
    $ hostsync status             # Show commands and host connectivity
    $ hostsync git                # Run the 'git' command
    $ hostsync --dry-run git      # Show the unison command line only
"""

from .__version__ import (
    __version__,
    __version_info__,
    get_version,
    get_version_info,
    MINIMUM_UNISON_VERSION,
)

# Core components
from .core.sync_orchestrator import SyncOrchestrator
from .core.config_store import ConfigStore
from .core.profile_generator import ProfileGenerator
from .core.unison_runner import SyncRunner
from .core.host_inspector import HostInspector
from .core.bootstrapper import Bootstrapper

# Exceptions
from .core.exceptions import (
    HostSyncError,
    ConfigNotFound,
    ConfigInvalid,
    CommandNotFound,
    SyncFailed,
)

# Configuration and utilities
from .core.models import Configuration, ResolvedCommand, RunOptions, RunResult

__all__ = [
    # Version information
    "__version__",
    "__version_info__",
    "get_version",
    "get_version_info",
    "MINIMUM_UNISON_VERSION",

    # Core classes
    "SyncOrchestrator",
    "ConfigStore",
    "ProfileGenerator",
    "SyncRunner",
    "HostInspector",
    "Bootstrapper",

    # Exceptions
    "HostSyncError",
    "ConfigNotFound",
    "ConfigInvalid",
    "CommandNotFound",
    "SyncFailed",

    # Models
    "Configuration",
    "ResolvedCommand",
    "RunOptions",
    "RunResult",
]

# Package metadata
__title__ = "hostsync"
__description__ = "Named two-way directory synchronization over SSH with unison"
__license__ = "MIT"

# Compatibility check
import sys
from .__version__ import MINIMUM_PYTHON_VERSION

if sys.version_info < MINIMUM_PYTHON_VERSION:
    raise RuntimeError(
        f"hostsync requires Python {'.'.join(map(str, MINIMUM_PYTHON_VERSION))} "
        f"or higher. You are using Python {sys.version_info.major}.{sys.version_info.minor}."
    )
