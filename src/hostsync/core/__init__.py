"""
Core modules for hostsync.

This package contains the core functionality: configuration loading, unison
profile generation and execution, host inspection and bootstrap.
"""

from .bootstrapper import Bootstrapper
from .config_store import ConfigStore, parse_ignore_rules
from .exceptions import (
    AuthenticationFailed,
    BootstrapStepFailed,
    CommandNotFound,
    ConfigInvalid,
    ConfigNotFound,
    DependencyMissing,
    HostSyncError,
    HostUnreachable,
    InvalidArgument,
    ProfileLocked,
    SyncFailed,
    UserCancelled,
)
from .host_inspector import HostInspector, HostPaths, connectivity_error
from .locking import ProfileLock
from .models import (
    BootstrapResult,
    BootstrapStatus,
    CommandOverrides,
    Configuration,
    ExitCode,
    Finding,
    GlobalDefaults,
    HostState,
    HostTarget,
    IgnoreKind,
    IgnoreRule,
    LoggingConfig,
    LogLevel,
    ProbeStage,
    RemoteRoot,
    ResolvedCommand,
    RunOptions,
    RunResult,
    RunStatus,
    StepResult,
    StepStatus,
    SyncCommand,
)
from .profile_generator import ProfileGenerator
from .progress import ProgressState, ProgressTracker
from .ssh_manager import LocalShell, RemoteShell, SSHManager
from .sync_orchestrator import SyncOrchestrator
from .unison_runner import ProgressReporter, SyncRunner

__all__ = [
    # Core components
    "ConfigStore",
    "ProfileGenerator",
    "SyncRunner",
    "HostInspector",
    "Bootstrapper",
    "SyncOrchestrator",
    "SSHManager",
    "LocalShell",
    "RemoteShell",
    "ProfileLock",
    "ProgressReporter",
    "ProgressTracker",
    "ProgressState",
    "HostPaths",
    "connectivity_error",
    "parse_ignore_rules",
    # Models and data structures
    "Configuration",
    "GlobalDefaults",
    "SyncCommand",
    "ResolvedCommand",
    "CommandOverrides",
    "IgnoreRule",
    "RemoteRoot",
    "RunOptions",
    "RunResult",
    "Finding",
    "HostTarget",
    "HostState",
    "StepResult",
    "BootstrapResult",
    "LoggingConfig",
    # Enums
    "ExitCode",
    "IgnoreKind",
    "RunStatus",
    "ProbeStage",
    "StepStatus",
    "BootstrapStatus",
    "LogLevel",
    # Exceptions
    "HostSyncError",
    "ConfigNotFound",
    "ConfigInvalid",
    "CommandNotFound",
    "InvalidArgument",
    "DependencyMissing",
    "HostUnreachable",
    "AuthenticationFailed",
    "SyncFailed",
    "BootstrapStepFailed",
    "UserCancelled",
    "ProfileLocked",
]
