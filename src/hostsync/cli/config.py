"""Config CLI for hostsync."""

import sys
from pathlib import Path
from typing import Optional

import click
from rich.markup import escape
from rich.table import Table

from ..core.exceptions import ConfigInvalid, HostSyncError, UserCancelled
from ..core.models import ExitCode
from .common import confirm, console, get_store, overrides_from, report_error


@click.group()
def config():
    """Show, relocate or create the configuration file."""


@config.command("get")
@click.pass_context
def config_get(ctx):
    """Print the active configuration path."""
    store = get_store(ctx.obj)
    path = store.resolve_config_path(ctx.obj.get("config_path"))
    console.print(str(path), soft_wrap=True, highlight=False)
    if not path.is_file():
        console.print("[yellow]⚠️  No configuration file exists there yet[/yellow]")


@config.command("set")
@click.argument("path", type=str)
@click.pass_context
def config_set(ctx, path):
    """Point hostsync at the configuration file PATH."""
    store = get_store(ctx.obj)
    try:
        result = store.relocate(path, confirm=confirm)
    except HostSyncError as e:
        report_error(e, ctx.obj.get("debug", False))
        sys.exit(e.exit_code)
    except OSError as e:
        console.print(f"[red]❌ Error: {escape(str(e))}[/red]")
        sys.exit(ExitCode.GENERAL_ERROR)

    console.print(f"[green]✅ Config location set to {escape(result['config_path'])}[/green]")
    console.print(f"   Pointer file: {escape(result['pointer_path'])}", highlight=False)
    if result["copied_from"]:
        console.print(f"   Copied existing config from {escape(result['copied_from'])}")
    if not Path(result["config_path"]).is_file():
        console.print("[yellow]💡 Run 'hostsync config init' to create it[/yellow]")


@config.command("init")
@click.argument("path", type=str, required=False)
@click.pass_context
def config_init(ctx, path: Optional[str]):
    """Write the default configuration and ignore file.

    Without PATH the active configuration location is used.
    """
    store = get_store(ctx.obj)
    target = Path(path).expanduser() if path else store.resolve_config_path(ctx.obj.get("config_path"))

    try:
        result = store.init(str(target), confirm=confirm)
    except UserCancelled as e:
        console.print(f"[yellow]{escape(e.message)}[/yellow]")
        return
    except OSError as e:
        console.print(f"[red]❌ Error: {escape(str(e))}[/red]")
        sys.exit(ExitCode.GENERAL_ERROR)

    if result["config_written"]:
        console.print(f"[green]✅ Created config: {escape(result['config_path'])}[/green]")
    if result["ignore_written"]:
        console.print(f"[green]✅ Created ignore file: {escape(result['ignore_path'])}[/green]")
    if result["config_written"]:
        console.print("[blue]💡 Edit the COMMAND blocks, then run 'hostsync <command>'[/blue]")


@config.command("show")
@click.pass_context
def config_show(ctx):
    """List the named commands with inheritance applied."""
    store = get_store(ctx.obj)
    debug = ctx.obj.get("debug", False)
    try:
        loaded = store.load(ctx.obj.get("config_path"))
    except HostSyncError as e:
        report_error(e, debug)
        sys.exit(e.exit_code)

    table = Table(title=f"📂 {loaded.path}", show_header=True)
    table.add_column("Command", style="cyan")
    table.add_column("Local path", style="white")
    table.add_column("Remote", style="white")
    table.add_column("Hosts", style="yellow")

    overrides = overrides_from(ctx.obj)
    for name in loaded.command_names():
        try:
            command = store.resolve_command(loaded, name, overrides)
        except ConfigInvalid as e:
            table.add_row(name, f"[red]{escape('; '.join(e.validation_errors))}[/red]", "", "")
            continue
        table.add_row(
            name,
            escape(command.local_path),
            escape(f"{command.remote_user}:{command.remote_path}"),
            ", ".join(command.remote_hosts),
        )

    console.print(table)
