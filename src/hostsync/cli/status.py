"""Status CLI for hostsync."""

import json
from typing import Any, Dict, Optional

import click
import yaml
from rich.markup import escape
from rich.table import Table

from ..core.config_store import ConfigStore
from ..core.exceptions import ConfigInvalid, HostSyncError
from ..core.host_inspector import probe_unison_version, version_number
from ..core.models import CommandOverrides, ResolvedCommand
from ..core.ssh_manager import LocalShell, RemoteShell, SSHManager
from .common import console, get_store, overrides_from


def check_host(command: ResolvedCommand, host: str) -> Dict[str, Any]:
    """Connectivity and remote unison version for one host of a command."""
    ssh = SSHManager(command.remote_user)
    info: Dict[str, Any] = {
        "host": host,
        "reachable": False,
        "authenticated": False,
        "unison_version": None,
    }

    reach = ssh.check_reachable(host)
    info["reachable"] = reach["reachable"]
    if not reach["reachable"]:
        return info

    conn = ssh.test_connection(host)
    info["authenticated"] = conn["authenticated"]
    if not conn["authenticated"]:
        info["error"] = conn["output"]
        return info

    version = probe_unison_version(RemoteShell(ssh, host), command.remote_unison_path, search_path=False)
    info["unison_version"] = version_number(version)
    return info


def collect_status(
    store: ConfigStore,
    config_path: Optional[str] = None,
    overrides: Optional[CommandOverrides] = None,
    check_hosts: bool = True,
) -> Dict[str, Any]:
    """Everything ``hostsync status`` reports, as plain data."""
    path = store.resolve_config_path(config_path)
    status: Dict[str, Any] = {
        "config_path": str(path),
        "config_exists": path.is_file(),
        "pointer_path": str(store.pointer_path),
        "pointer_exists": store.pointer_path.is_file(),
        "unison": {"path": None, "version": None},
        "commands": [],
    }

    local_unison = (overrides.unison_path if overrides else None) or "unison"
    if not status["config_exists"]:
        status["unison"]["path"] = local_unison
        status["unison"]["version"] = version_number(probe_unison_version(LocalShell(), local_unison))
        return status

    try:
        config = store.load(str(path))
    except HostSyncError as e:
        status["error"] = e.message
        if isinstance(e, ConfigInvalid):
            status["validation_errors"] = e.validation_errors
        return status

    local_unison = (overrides.unison_path if overrides else None) or config.defaults.unison_path
    status["unison"]["path"] = local_unison
    status["unison"]["version"] = version_number(
        probe_unison_version(LocalShell(), local_unison, search_path=False)
    )

    for name in config.command_names():
        entry: Dict[str, Any] = {"name": name}
        try:
            command = store.resolve_command(config, name, overrides)
        except ConfigInvalid as e:
            entry["error"] = "; ".join(e.validation_errors)
            status["commands"].append(entry)
            continue

        entry.update({
            "local_path": command.local_path,
            "remote_path": command.remote_path,
            "remote_user": command.remote_user,
            "profile": command.profile_name,
            "hosts": [],
        })
        for host in command.remote_hosts:
            if check_hosts:
                entry["hosts"].append(check_host(command, host))
            else:
                entry["hosts"].append({"host": host})
        status["commands"].append(entry)

    return status


def _yes_no(value: Optional[bool]) -> str:
    if value is None:
        return "-"
    return "✅ Yes" if value else "❌ No"


def print_status(status: Dict[str, Any]):
    """Print status in rich formatted tables."""
    console.print("\n[bold blue]🔗 hostsync status[/bold blue]")

    info_table = Table(show_header=False, box=None)
    info_table.add_column("Field", style="cyan")
    info_table.add_column("Value", style="white")
    info_table.add_row("Config", escape(status["config_path"]))
    info_table.add_row("Config exists", _yes_no(status["config_exists"]))
    info_table.add_row("Pointer file", escape(status["pointer_path"]))
    info_table.add_row("Pointer in use", _yes_no(status["pointer_exists"]))
    info_table.add_row("Unison", escape(str(status["unison"]["path"])))
    info_table.add_row("Unison version", status["unison"]["version"] or "❌ Not found")
    console.print(info_table)

    if "error" in status:
        console.print(f"\n[red]❌ {escape(status['error'])}[/red]")
        for problem in status.get("validation_errors", []):
            console.print(f"[red]   • {escape(problem)}[/red]")
        return

    if not status["config_exists"]:
        console.print("\n[yellow]💡 Run 'hostsync config init' to create a configuration[/yellow]")
        return

    console.print("\n[bold blue]📁 Commands[/bold blue]")
    for entry in status["commands"]:
        if "error" in entry:
            console.print(f"[red]❌ {escape(entry['name'])}: {escape(entry['error'])}[/red]")
            continue

        table = Table(title=f"📂 {escape(entry['name'])}", show_header=True)
        table.add_column("Host", style="cyan")
        table.add_column("Reachable", style="white")
        table.add_column("SSH", style="white")
        table.add_column("Unison", style="yellow")
        for host in entry["hosts"]:
            table.add_row(
                escape(host["host"]),
                _yes_no(host.get("reachable")),
                _yes_no(host.get("authenticated")),
                host.get("unison_version") or "-",
            )
        console.print(
            f"{escape(entry['local_path'])} ⇄ "
            f"{escape(entry['remote_user'])}:{escape(entry['remote_path'])}",
            highlight=False,
        )
        console.print(table)


@click.command()
@click.option(
    "--output",
    type=click.Choice(["console", "json", "yaml"]),
    default="console",
    help="Output format",
)
@click.option("--no-check", is_flag=True, help="Do not contact the hosts")
@click.pass_context
def status(ctx, output, no_check):
    """Show configuration, unison and host connectivity."""
    store = get_store(ctx.obj)
    if output == "console" and not no_check:
        with console.status("Checking hosts..."):
            info = collect_status(store, ctx.obj.get("config_path"), overrides_from(ctx.obj))
    else:
        info = collect_status(
            store, ctx.obj.get("config_path"), overrides_from(ctx.obj), check_hosts=not no_check
        )

    if output == "json":
        click.echo(json.dumps(info, indent=2, default=str))
    elif output == "yaml":
        click.echo(yaml.dump(info, default_flow_style=False, sort_keys=False))
    else:
        print_status(info)
