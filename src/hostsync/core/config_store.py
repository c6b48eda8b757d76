"""
Configuration management for hostsync.

This module locates, loads, validates and writes the configuration file and
the ignore-pattern file. The config file is a shell-sourceable list of
``KEY="value"`` assignments: global defaults first, then one block per named
command, each block starting at a ``COMMAND=`` line.
"""

import getpass
import logging
import os
import platform
import re
import shlex
import shutil
import sys
from pathlib import Path
from string import Template
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from .exceptions import (
    CommandNotFound,
    ConfigInvalid,
    ConfigNotFound,
    InvalidArgument,
    UserCancelled,
)
from .fsutil import atomic_write
from .models import (
    CommandOverrides,
    Configuration,
    GlobalDefaults,
    IgnoreKind,
    IgnoreRule,
    ResolvedCommand,
    SyncCommand,
)
from .templates import CONFIG_TEMPLATE, DEFAULT_IGNORE_RULES, IGNORE_TEMPLATE

POINTER_ENV_VAR = "HOSTSYNC_POINTER_FILE"
POINTER_SUFFIX = ".config_location"

GLOBAL_KEYS = {
    "SYNC_REMOTE_USER": "remote_user",
    "SYNC_UNISON_PATH": "unison_path",
    "SYNC_REMOTE_UNISON_PATH": "remote_unison_path",
    "SYNC_UNISON_PREF_DIR": "pref_dir",
    "SYNC_IGNORE_FILE": "ignore_file",
    "SYNC_REMOTE_IPS": "remote_hosts",
}

REQUIRED_GLOBALS = [
    "SYNC_REMOTE_USER",
    "SYNC_UNISON_PATH",
    "SYNC_UNISON_PREF_DIR",
    "SYNC_IGNORE_FILE",
]

COMMAND_KEYS = {
    "REMOTE_USER": "remote_user",
    "REMOTE_HOSTS": "remote_hosts",
    "LOCAL_PATH": "local_path",
    "REMOTE_PATH": "remote_path",
    "EXTRA_OPTIONS": "extra_options",
    "UNISON_PATH": "unison_path",
    "REMOTE_UNISON_PATH": "remote_unison_path",
    "PREF_DIR": "pref_dir",
    "IGNORE_FILE": "ignore_file",
}

_ASSIGNMENT = re.compile(r"^(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)=(.*)$")


def default_config_dir() -> Path:
    """``$XDG_CONFIG_HOME/sync``, falling back to ``~/.config/sync``."""
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "sync"


def default_pointer_path() -> Path:
    """Location of the indirection pointer, next to the running script."""
    override = os.environ.get(POINTER_ENV_VAR)
    if override:
        return Path(override).expanduser()

    script = sys.argv[0] if sys.argv and sys.argv[0] not in ("", "-c") else ""
    if script:
        script_path = Path(script).resolve()
        return script_path.with_name(script_path.name + POINTER_SUFFIX)
    return default_config_dir() / f"hostsync{POINTER_SUFFIX}"


def default_unison_path() -> str:
    """Best guess for the unison binary when writing a fresh template."""
    found = shutil.which("unison")
    if found:
        return found
    if platform.system() == "Darwin":
        return "/opt/homebrew/bin/unison"
    return "/usr/bin/unison"


def _unquote(raw: str) -> str:
    """Strip shell quoting and trailing comments from an assignment value."""
    tokens = shlex.split(raw, comments=True, posix=True)
    return " ".join(tokens)


def _expand(value: str, scope: Dict[str, str]) -> str:
    """Expand ``$VAR``/``${VAR}`` from earlier keys and the environment, then ``~``."""
    mapping = dict(os.environ)
    mapping.update(scope)
    return os.path.expanduser(Template(value).safe_substitute(mapping))


def parse_ignore_rules(text: str, source: Optional[str] = None) -> List[IgnoreRule]:
    """Parse ignore-file content into an ordered rule list.

    Raises:
        ConfigInvalid: listing every malformed line
    """
    rules: List[IgnoreRule] = []
    errors: List[str] = []
    kinds = {kind.value: kind for kind in IgnoreKind}

    for lineno, line in enumerate(text.splitlines(), 1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        parts = stripped.split(None, 1)
        if len(parts) != 2 or parts[0] not in kinds:
            errors.append(
                f"line {lineno}: expected 'Name|Path|Regex <pattern>', got {stripped!r}"
            )
            continue

        rules.append(IgnoreRule(kind=kinds[parts[0]], pattern=parts[1]))

    if errors:
        raise ConfigInvalid(
            f"Invalid ignore file: {source or '<text>'}",
            config_path=source,
            validation_errors=errors,
        )
    return rules


class ConfigStore:
    """Loads, validates and persists the hostsync configuration."""

    def __init__(
        self,
        pointer_path: Optional[str] = None,
        default_path: Optional[str] = None,
    ):
        """Initialize the config store.

        Args:
            pointer_path: Indirection pointer file. If None, use the default
                next to the running script.
            default_path: Fixed default config location. If None, use
                ``$XDG_CONFIG_HOME/sync/config``.
        """
        self.logger = logging.getLogger(__name__)
        self.pointer_path = (
            Path(pointer_path).expanduser() if pointer_path else default_pointer_path()
        )
        self.default_path = (
            Path(default_path).expanduser()
            if default_path
            else default_config_dir() / "config"
        )

    # ------------------------------------------------------------------
    # Location
    # ------------------------------------------------------------------

    def resolve_config_path(self, explicit: Optional[str] = None) -> Path:
        """Resolve the active config path.

        An explicit ``--config`` path wins, then the indirection pointer, then
        the fixed default. The returned file may not exist.
        """
        if explicit:
            return Path(explicit).expanduser()

        if self.pointer_path.is_file():
            target = self.pointer_path.read_text(encoding="utf-8").strip()
            if target:
                self.logger.debug(f"Config location redirected by {self.pointer_path}")
                return Path(target).expanduser()

        return self.default_path

    def require_config_path(self, explicit: Optional[str] = None) -> Path:
        """Like :meth:`resolve_config_path` but the file must exist.

        Raises:
            ConfigNotFound: If there is no config file at the resolved path
        """
        path = self.resolve_config_path(explicit)
        if not path.is_file():
            raise ConfigNotFound(
                f"Configuration file not found: {path}", config_path=str(path)
            )
        return path

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self, path: Optional[str] = None) -> Configuration:
        """Load and validate a configuration file.

        Every problem in the file is collected before raising, so a single
        ``ConfigInvalid`` enumerates all missing globals and bad lines.

        Raises:
            ConfigNotFound: If the file does not exist
            ConfigInvalid: If the file is incomplete or malformed
        """
        config_path = self.require_config_path(path)

        try:
            text = config_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigInvalid(
                f"Failed to read configuration file: {e}", config_path=str(config_path)
            ) from e

        config = self.parse(text, source=str(config_path))
        self.logger.info(
            f"Loaded configuration from {config_path} "
            f"({len(config.commands)} commands)"
        )
        return config

    def parse(self, text: str, source: Optional[str] = None) -> Configuration:
        """Parse config file content. See :meth:`load`."""
        errors: List[str] = []
        scope: Dict[str, str] = {}
        global_values: Dict[str, Any] = {}
        blocks: List[Tuple[int, Dict[str, Any]]] = []
        current: Optional[Dict[str, Any]] = None

        for lineno, line in enumerate(text.splitlines(), 1):
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue

            match = _ASSIGNMENT.match(stripped)
            if not match:
                errors.append(f"line {lineno}: not a KEY=value assignment: {stripped!r}")
                continue

            key, raw = match.groups()
            try:
                value = _unquote(raw)
            except ValueError as e:
                errors.append(f"line {lineno}: {key}: {e}")
                continue

            if key == "COMMAND":
                current = {"name": value}
                blocks.append((lineno, current))
                continue

            if current is None:
                expanded = _expand(value, scope)
                scope[key] = expanded
                if key in GLOBAL_KEYS:
                    global_values[GLOBAL_KEYS[key]] = expanded
                continue

            if key not in COMMAND_KEYS:
                errors.append(
                    f"line {lineno}: unknown key {key} in command '{current['name']}'"
                )
                continue

            field = COMMAND_KEYS[key]
            if field == "extra_options":
                try:
                    current[field] = shlex.split(value)
                except ValueError as e:
                    errors.append(f"line {lineno}: {key}: {e}")
            else:
                current[field] = _expand(value, scope)

        for key in REQUIRED_GLOBALS:
            if not global_values.get(GLOBAL_KEYS[key]):
                errors.append(f"missing required setting {key}")

        commands: List[SyncCommand] = []
        seen: Dict[str, int] = {}
        for lineno, block in blocks:
            name = block.get("name", "")
            if name in seen:
                errors.append(
                    f"line {lineno}: duplicate command '{name}' "
                    f"(first defined on line {seen[name]})"
                )
                continue
            seen[name] = lineno
            try:
                commands.append(SyncCommand(**block))
            except ValidationError as e:
                for err in e.errors():
                    errors.append(f"line {lineno}: command '{name}': {err['msg']}")

        if errors:
            raise ConfigInvalid(
                f"Invalid configuration: {source or '<text>'}",
                config_path=source,
                validation_errors=errors,
            )

        return Configuration(
            path=source,
            defaults=GlobalDefaults(**global_values),
            commands=commands,
        )

    def resolve_command(
        self,
        config: Configuration,
        name: str,
        overrides: Optional[CommandOverrides] = None,
    ) -> ResolvedCommand:
        """Resolve a named command, applying inheritance and overrides.

        Raises:
            CommandNotFound: If no block has this name
            ConfigInvalid: If the block is missing fields after inheritance
        """
        block = config.get(name)
        if block is None:
            raise CommandNotFound(name, config.command_names())

        defaults = config.defaults
        unison_path = block.unison_path or defaults.unison_path
        values = {
            "name": block.name,
            "remote_user": block.remote_user or defaults.remote_user,
            "remote_hosts": list(block.remote_hosts or defaults.remote_hosts),
            "local_path": block.local_path or "",
            "remote_path": block.remote_path or "",
            "extra_options": list(block.extra_options),
            "unison_path": unison_path,
            "remote_unison_path": (
                block.remote_unison_path or defaults.remote_unison_path or unison_path
            ),
            "pref_dir": block.pref_dir or defaults.pref_dir,
            "ignore_file": block.ignore_file or defaults.ignore_file,
        }

        if overrides is not None:
            for field, value in overrides.model_dump(exclude_none=True).items():
                values[field] = value
            # -servercmd follows a local binary given on the command line
            if overrides.unison_path and not overrides.remote_unison_path:
                values["remote_unison_path"] = overrides.unison_path

        missing = [
            field
            for field in ("local_path", "remote_path", "remote_hosts")
            if not values[field]
        ]
        if missing:
            raise ConfigInvalid(
                f"Command '{name}' is incomplete",
                config_path=config.path,
                validation_errors=[f"missing {field}" for field in missing],
            )

        try:
            return ResolvedCommand(**values)
        except ValidationError as e:
            raise ConfigInvalid(
                f"Command '{name}' is invalid",
                config_path=config.path,
                validation_errors=[err["msg"] for err in e.errors()],
            ) from e

    def load_ignore_rules(self, path: Optional[str]) -> List[IgnoreRule]:
        """Load the ignore rules; the built-in defaults apply if the file is absent."""
        if not path or not Path(path).expanduser().is_file():
            self.logger.debug(f"Ignore file {path} not found, using defaults")
            return list(DEFAULT_IGNORE_RULES)

        ignore_path = Path(path).expanduser()
        return parse_ignore_rules(
            ignore_path.read_text(encoding="utf-8"), source=str(ignore_path)
        )

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def render_template(self, target: Path) -> str:
        """Default config content for a config file at ``target``."""
        return CONFIG_TEMPLATE.format(
            remote_user=getpass.getuser(),
            unison_path=default_unison_path(),
            ignore_file=str(target.parent / "ignore"),
        )

    def init(
        self,
        target: Optional[str] = None,
        overwrite: bool = False,
        confirm: Optional[Callable[[str], bool]] = None,
    ) -> Dict[str, Any]:
        """Write the default config template and companion ignore file.

        An existing config is replaced when ``overwrite`` is set or ``confirm``
        agrees to it; an existing ignore file is never replaced.

        Returns:
            Dictionary describing what was written

        Raises:
            UserCancelled: If ``confirm`` declines replacing an existing config
        """
        config_path = Path(target).expanduser() if target else self.resolve_config_path()
        ignore_path = config_path.parent / "ignore"
        result = {
            "config_path": str(config_path),
            "config_written": False,
            "ignore_path": str(ignore_path),
            "ignore_written": False,
        }

        if not ignore_path.exists():
            atomic_write(ignore_path, IGNORE_TEMPLATE)
            result["ignore_written"] = True
            self.logger.info(f"Created default ignore file at {ignore_path}")

        if config_path.exists() and not overwrite:
            if confirm is not None:
                if not confirm(f"{config_path} already exists. Overwrite it?"):
                    raise UserCancelled(f"Keeping existing config at {config_path}")
            else:
                self.logger.info(f"Config already exists at {config_path}, leaving it")
                return result

        atomic_write(config_path, self.render_template(config_path))
        result["config_written"] = True
        self.logger.info(f"Created default config at {config_path}")
        return result

    def relocate(
        self,
        new_path: str,
        confirm: Optional[Callable[[str], bool]] = None,
    ) -> Dict[str, Any]:
        """Point the indirection file at ``new_path``.

        If a config exists at the currently active location and differs from
        the new one, ``confirm`` is asked whether to copy it across. Without a
        confirmation callback nothing is copied.
        """
        if not new_path:
            raise InvalidArgument("New config location not specified", "path")

        new = Path(new_path).expanduser()
        old = self.resolve_config_path()
        result = {"pointer_path": str(self.pointer_path), "config_path": str(new),
                  "copied_from": None}

        new.parent.mkdir(parents=True, exist_ok=True)
        atomic_write(self.pointer_path, f"{new}\n")
        self.logger.info(f"Config location updated to {new}")

        if old.is_file() and old.resolve() != new.resolve():
            question = f"Copy existing config from {old} to {new}?"
            if confirm is not None and confirm(question):
                atomic_write(new, old.read_text(encoding="utf-8"))
                result["copied_from"] = str(old)
                self.logger.info(f"Copied config from {old} to {new}")

        return result
