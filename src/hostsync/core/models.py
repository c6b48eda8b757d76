"""
Pydantic models for hostsync configuration and data structures.

This module defines the data models used throughout the application,
providing validation, serialization, and type safety.
"""

from enum import Enum, IntEnum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExitCode(IntEnum):
    """Observable process exit codes."""
    SUCCESS = 0
    GENERAL_ERROR = 1
    CONFIG_ERROR = 2
    NETWORK_ERROR = 3


class IgnoreKind(str, Enum):
    """Unison ignore pattern kinds."""
    NAME = "Name"
    PATH = "Path"
    REGEX = "Regex"


class RunStatus(str, Enum):
    """Outcome of one unison run."""
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
    DRY_RUN = "dry_run"


class ProbeStage(str, Enum):
    """Stages a host inspection moves through."""
    UNPROBED = "unprobed"
    REACHABILITY_CHECKED = "reachability_checked"
    SHELL_ACCESS_VERIFIED = "shell_access_verified"
    CHECKS_RUN = "checks_run"
    REPORTED = "reported"


class StepStatus(str, Enum):
    """Outcome of one bootstrap step."""
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


class BootstrapStatus(str, Enum):
    """Overall bootstrap outcome."""
    ALREADY_BOOTSTRAPPED = "already_bootstrapped"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    FAILED = "failed"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


def _split_hosts(value):
    if value is None:
        return []
    if isinstance(value, str):
        return [h.strip() for h in value.split(",") if h.strip()]
    return [h.strip() for h in value if h and h.strip()]


class GlobalDefaults(BaseModel):
    """Global defaults every named command inherits from."""

    remote_user: str = Field(description="Default remote SSH user")
    unison_path: str = Field(description="Path to the local unison binary")
    remote_unison_path: Optional[str] = Field(
        None, description="Path to unison on remote hosts (defaults to unison_path)"
    )
    pref_dir: str = Field(description="Unison preferences directory")
    ignore_file: str = Field(description="Ignore pattern file")
    remote_hosts: List[str] = Field(
        default_factory=list, description="Default remote hosts"
    )

    @field_validator("remote_hosts", mode="before")
    @classmethod
    def split_hosts(cls, v):
        """Accept a comma-separated string as well as a list."""
        return _split_hosts(v)


class SyncCommand(BaseModel):
    """A named command block as written in the config file.

    Every field except ``name`` is optional here; omitted fields are
    inherited from :class:`GlobalDefaults` when the command is resolved.
    """

    name: str = Field(description="Unique command name")
    remote_user: Optional[str] = Field(None, description="Remote user override")
    remote_hosts: List[str] = Field(default_factory=list, description="Target hosts")
    local_path: Optional[str] = Field(None, description="Local root")
    remote_path: Optional[str] = Field(None, description="Remote root")
    extra_options: List[str] = Field(
        default_factory=list, description="Passthrough unison flags"
    )
    unison_path: Optional[str] = Field(None, description="Local unison override")
    remote_unison_path: Optional[str] = Field(None, description="Remote unison override")
    pref_dir: Optional[str] = Field(None, description="Preferences directory override")
    ignore_file: Optional[str] = Field(None, description="Ignore file override")

    @field_validator("remote_hosts", mode="before")
    @classmethod
    def split_hosts(cls, v):
        """Accept a comma-separated string as well as a list."""
        return _split_hosts(v)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        """Command names must be non-empty single words."""
        if not v or not v.strip():
            raise ValueError("command name must not be empty")
        if any(ch.isspace() for ch in v):
            raise ValueError(f"command name must not contain whitespace: {v!r}")
        return v


class ResolvedCommand(BaseModel):
    """A named command with inheritance applied; always runnable."""

    name: str
    remote_user: str
    remote_hosts: List[str]
    local_path: str
    remote_path: str
    extra_options: List[str] = Field(default_factory=list)
    unison_path: str
    remote_unison_path: str
    pref_dir: str
    ignore_file: str

    @field_validator(
        "remote_user", "local_path", "remote_path", "unison_path",
        "remote_unison_path", "pref_dir", "ignore_file",
    )
    @classmethod
    def not_empty(cls, v, info):
        if not v or not str(v).strip():
            raise ValueError(f"{info.field_name} must not be empty")
        return v

    @field_validator("remote_hosts")
    @classmethod
    def at_least_one_host(cls, v):
        if not v:
            raise ValueError("at least one remote host is required")
        return v

    @property
    def profile_name(self) -> str:
        """Name of the unison profile generated for this command."""
        return f"{self.name}_sync"


class Configuration(BaseModel):
    """The whole configuration file, parsed once."""

    path: Optional[str] = Field(None, description="File the configuration came from")
    defaults: GlobalDefaults
    commands: List[SyncCommand] = Field(default_factory=list)

    def command_names(self) -> List[str]:
        """Names of all commands in file order."""
        return [c.name for c in self.commands]

    def get(self, name: str) -> Optional[SyncCommand]:
        """Look up a command block by exact name."""
        for command in self.commands:
            if command.name == name:
                return command
        return None


class CommandOverrides(BaseModel):
    """Per-invocation overrides from the command line."""

    remote_user: Optional[str] = None
    remote_hosts: Optional[List[str]] = None
    local_path: Optional[str] = None
    remote_path: Optional[str] = None
    unison_path: Optional[str] = None
    remote_unison_path: Optional[str] = None
    pref_dir: Optional[str] = None
    ignore_file: Optional[str] = None


class IgnoreRule(BaseModel):
    """One unison ignore rule."""

    model_config = ConfigDict(frozen=True)

    kind: IgnoreKind
    pattern: str

    @field_validator("pattern")
    @classmethod
    def pattern_not_empty(cls, v):
        if not v.strip():
            raise ValueError("ignore pattern must not be empty")
        return v.strip()

    def to_line(self) -> str:
        """Render as an ignore-file line."""
        return f"{self.kind.value} {self.pattern}"

    def to_preference(self) -> str:
        """Render as a unison profile preference."""
        return f"ignore = {self.to_line()}"


class RemoteRoot(BaseModel):
    """Remote root of a sync: user, host and path."""

    user: str
    host: str
    path: str

    @property
    def url(self) -> str:
        """Unison ssh URL.

        An absolute path yields ``ssh://user@host//abs/path``; a relative
        one is taken relative to the remote home directory.
        """
        return f"ssh://{self.user}@{self.host}/{self.path}"


class RunOptions(BaseModel):
    """Options for a single unison run."""

    debug: bool = False
    force: bool = False
    dry_run: bool = False
    extra_args: List[str] = Field(default_factory=list)


class RunResult(BaseModel):
    """Result of a single unison run."""

    status: RunStatus
    files_processed: int = 0
    duration: float = 0.0
    command: str = ""
    profile: Optional[str] = None
    host: Optional[str] = None
    roots: List[str] = Field(default_factory=list, description="Roots declared in the profile")


class Finding(BaseModel):
    """A missing prerequisite and how to fix it."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(description="Stable identifier, e.g. 'unison'")
    description: str = Field(description="Human-readable change to make")
    remediation: Optional[str] = Field(None, description="Suggested fix")


class HostTarget(BaseModel):
    """Which host to inspect or bootstrap."""

    host: str = "localhost"
    user: Optional[str] = None
    is_local: bool = True
    os_family: Optional[str] = None
    distro: Optional[str] = None

    @property
    def label(self) -> str:
        if self.is_local:
            return "localhost"
        return f"{self.user}@{self.host}" if self.user else self.host


class HostState(BaseModel):
    """Diagnostic result of probing one host. Replaced, never mutated."""

    model_config = ConfigDict(frozen=True)

    host: str
    is_local: bool
    stage: ProbeStage = ProbeStage.UNPROBED
    os_family: Optional[str] = None
    distro: Optional[str] = None
    reachable: Optional[bool] = None
    authenticated: Optional[bool] = None
    unison_version: Optional[str] = None
    local_unison_version: Optional[str] = None
    installed: List[str] = Field(default_factory=list)
    missing: List[Finding] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    connectivity_output: Optional[str] = None

    @property
    def connected(self) -> bool:
        """Local hosts are always connected; remote ones need both steps."""
        if self.is_local:
            return True
        return bool(self.reachable and self.authenticated)

    @property
    def missing_keys(self) -> List[str]:
        return [f.key for f in self.missing]

    def has_missing(self, key: str) -> bool:
        return key in self.missing_keys


class StepResult(BaseModel):
    """Outcome of one bootstrap step."""

    name: str
    status: StepStatus
    output: str = ""


class BootstrapResult(BaseModel):
    """Outcome of applying bootstrap changes to a host."""

    host: str
    status: BootstrapStatus
    steps: List[StepResult] = Field(default_factory=list)

    @property
    def failed_steps(self) -> List[StepResult]:
        return [s for s in self.steps if s.status == StepStatus.FAILED]

    @property
    def success(self) -> bool:
        return self.status != BootstrapStatus.FAILED


class LoggingConfig(BaseModel):
    """Logging configuration."""

    console_level: LogLevel = Field(LogLevel.INFO, description="Console log level")
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string"
    )
    date_format: str = Field("%Y-%m-%d %H:%M:%S", description="Date format string")
