"""
Exception classes for hostsync.

This module defines all custom exceptions used throughout hostsync. Every
exception carries the process exit code the CLI reports for it, so the
command handlers only need a single ``except HostSyncError`` clause.
"""

from typing import Optional, Dict, Any, List

from .models import ExitCode


class HostSyncError(Exception):
    """Base exception for all hostsync errors."""

    exit_code: int = ExitCode.GENERAL_ERROR

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """Initialize HostSyncError.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code for programmatic handling
            details: Additional error details and context
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "exit_code": int(self.exit_code),
            "message": self.message,
            "details": self.details
        }


class ConfigNotFound(HostSyncError):
    """Raised when a command requires a configuration file that does not exist."""

    exit_code = ExitCode.CONFIG_ERROR

    def __init__(self, message: str, config_path: Optional[str] = None):
        details = {}
        if config_path:
            details["config_path"] = config_path

        super().__init__(message, "CONFIG_NOT_FOUND", details)
        self.config_path = config_path


class ConfigInvalid(HostSyncError):
    """Raised when the configuration is incomplete or malformed.

    All problems found in one pass are reported together in
    ``validation_errors`` rather than one at a time.
    """

    exit_code = ExitCode.CONFIG_ERROR

    def __init__(
        self,
        message: str,
        config_path: Optional[str] = None,
        validation_errors: Optional[List[str]] = None
    ):
        details = {}
        if config_path:
            details["config_path"] = config_path
        if validation_errors:
            details["validation_errors"] = validation_errors

        super().__init__(message, "CONFIG_INVALID", details)
        self.config_path = config_path
        self.validation_errors = validation_errors or []


class CommandNotFound(HostSyncError):
    """Raised when a named command is not defined in the configuration."""

    exit_code = ExitCode.CONFIG_ERROR

    def __init__(self, name: str, known_commands: Optional[List[str]] = None):
        known = known_commands or []
        details = {"command": name, "known_commands": known}
        super().__init__(f"Command not found: {name}", "COMMAND_NOT_FOUND", details)
        self.name = name
        self.known_commands = known


class InvalidArgument(HostSyncError):
    """Raised when a command-line argument is missing or malformed."""

    def __init__(self, message: str, argument: Optional[str] = None):
        details = {"argument": argument} if argument else {}
        super().__init__(message, "INVALID_ARGUMENT", details)
        self.argument = argument


class DependencyMissing(HostSyncError):
    """Raised when a required external binary cannot be resolved."""

    def __init__(
        self,
        message: str,
        dependency_name: Optional[str] = None,
        searched_path: Optional[str] = None
    ):
        details = {}
        if dependency_name:
            details["dependency_name"] = dependency_name
        if searched_path:
            details["searched_path"] = searched_path

        super().__init__(message, "DEPENDENCY_MISSING", details)
        self.dependency_name = dependency_name
        self.searched_path = searched_path


class HostUnreachable(HostSyncError):
    """Raised when a host does not answer at the network level."""

    exit_code = ExitCode.NETWORK_ERROR

    def __init__(self, host: str, output: Optional[str] = None):
        details = {"host": host}
        if output:
            details["output"] = output
        super().__init__(f"Host {host} is not reachable", "HOST_UNREACHABLE", details)
        self.host = host
        self.output = output

    @property
    def remediation(self) -> str:
        return f"Check that {self.host} is up and accepts SSH connections on port 22"


class AuthenticationFailed(HostSyncError):
    """Raised when a host is reachable but non-interactive SSH login fails."""

    exit_code = ExitCode.NETWORK_ERROR

    def __init__(self, host: str, user: str, ssh_output: Optional[str] = None):
        details = {"host": host, "user": user}
        if ssh_output:
            details["ssh_output"] = ssh_output
        super().__init__(
            f"SSH authentication to {user}@{host} failed",
            "AUTHENTICATION_FAILED",
            details,
        )
        self.host = host
        self.user = user
        self.ssh_output = ssh_output

    @property
    def remediation(self) -> str:
        """Command that usually fixes the failure."""
        return f"ssh-copy-id {self.user}@{self.host}"


class SyncFailed(HostSyncError):
    """Raised when the unison subprocess exits non-zero.

    The captured output and the exact command line are kept verbatim so the
    run can be reproduced by hand.
    """

    def __init__(
        self,
        message: str,
        exit_code: int,
        captured_output: str,
        command: str
    ):
        details = {
            "unison_exit_code": exit_code,
            "command": command,
        }
        super().__init__(message, "SYNC_FAILED", details)
        self.unison_exit_code = exit_code
        self.captured_output = captured_output
        self.command = command


class BootstrapStepFailed(HostSyncError):
    """A single bootstrap step failed; carries the tool's own output."""

    def __init__(self, step: str, tool_output: str = ""):
        super().__init__(
            f"Bootstrap step '{step}' failed",
            "BOOTSTRAP_STEP_FAILED",
            {"step": step},
        )
        self.step = step
        self.tool_output = tool_output


class UserCancelled(HostSyncError):
    """Raised when the user declines a confirmation. Not a failure."""

    exit_code = ExitCode.SUCCESS

    def __init__(self, message: str = "Cancelled by user"):
        super().__init__(message, "USER_CANCELLED")


class ProfileLocked(HostSyncError):
    """Raised when another live process holds the lock for a profile."""

    def __init__(self, profile: str, pid: int, lock_path: Optional[str] = None):
        details = {"profile": profile, "pid": pid}
        if lock_path:
            details["lock_path"] = lock_path
        super().__init__(
            f"Profile '{profile}' is already being synchronized by process {pid}",
            "PROFILE_LOCKED",
            details,
        )
        self.profile = profile
        self.pid = pid
        self.lock_path = lock_path
