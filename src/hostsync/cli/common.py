"""Helpers shared by the hostsync CLI commands."""

import logging
import traceback
from typing import Any, Dict, Optional

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm

from ..core.config_store import ConfigStore
from ..core.exceptions import (
    AuthenticationFailed,
    CommandNotFound,
    ConfigInvalid,
    DependencyMissing,
    HostSyncError,
    HostUnreachable,
    SyncFailed,
)
from ..core.models import CommandOverrides, LoggingConfig, LogLevel

console = Console()


def setup_logging(debug: bool = False, logging_config: Optional[LoggingConfig] = None):
    """Setup logging configuration."""
    if logging_config is None:
        logging_config = LoggingConfig(console_level=LogLevel.DEBUG if debug else LogLevel.INFO)
    level = getattr(logging, logging_config.console_level.value)
    logging.basicConfig(
        level=level,
        format=logging_config.format,
        datefmt=logging_config.date_format,
        handlers=[logging.StreamHandler()],
    )
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)


def confirm(question: str, default: bool = False) -> bool:
    """Ask a yes/no question. Interrupt or end of input means no."""
    try:
        return Confirm.ask(question, default=default, console=console)
    except (KeyboardInterrupt, EOFError):
        console.print()
        return False


def get_store(obj: Dict[str, Any]) -> ConfigStore:
    """The config store for this invocation."""
    store = obj.get("config_store")
    if store is None:
        store = ConfigStore()
        obj["config_store"] = store
    return store


def overrides_from(obj: Dict[str, Any]) -> CommandOverrides:
    """Per-invocation overrides from the global options."""
    return CommandOverrides(
        remote_user=obj.get("user"),
        remote_hosts=[obj["ip"]] if obj.get("ip") else None,
        local_path=obj.get("local_path"),
        remote_path=obj.get("remote_path"),
        unison_path=obj.get("unison_path"),
        pref_dir=obj.get("pref_dir"),
        ignore_file=obj.get("ignore_file"),
    )


def report_error(error: HostSyncError, debug: bool = False):
    """Print an error with everything the user needs to act on it."""
    console.print(f"[red]❌ Error: {escape(error.message)}[/red]")

    if isinstance(error, ConfigInvalid):
        for problem in error.validation_errors:
            console.print(f"[red]   • {escape(problem)}[/red]")
    elif isinstance(error, CommandNotFound):
        if error.known_commands:
            console.print(f"[yellow]Known commands: {', '.join(error.known_commands)}[/yellow]")
        else:
            console.print("[yellow]No commands are defined in the configuration[/yellow]")
    elif isinstance(error, AuthenticationFailed):
        if error.ssh_output:
            console.print(escape(error.ssh_output), highlight=False)
        console.print(f"[yellow]💡 Try: {escape(error.remediation)}[/yellow]")
    elif isinstance(error, HostUnreachable):
        if error.output:
            console.print(escape(error.output.rstrip()), soft_wrap=True, highlight=False)
        console.print(f"[yellow]💡 {escape(error.remediation)}[/yellow]")
    elif isinstance(error, DependencyMissing):
        if error.searched_path:
            console.print(f"[yellow]Looked for: {escape(error.searched_path)}[/yellow]")
    elif isinstance(error, SyncFailed):
        console.print("[bold]Command:[/bold]")
        console.print(escape(error.command), soft_wrap=True, highlight=False)
        if error.captured_output.strip():
            console.print("[bold]Unison output:[/bold]")
            console.print(escape(error.captured_output.rstrip()), soft_wrap=True, highlight=False)

    if debug:
        console.print(f"[red]Details: {escape(str(error.details))}[/red]")


def report_unexpected(error: Exception, debug: bool = False):
    console.print(f"[red]❌ Unexpected error: {escape(str(error))}[/red]")
    if debug:
        console.print(traceback.format_exc())
