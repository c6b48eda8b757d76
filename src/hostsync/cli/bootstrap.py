"""Bootstrap CLI for hostsync."""

import getpass
import sys
from typing import List, Optional, Tuple

import click
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..core.bootstrapper import Bootstrapper
from ..core.config_store import ConfigStore
from ..core.exceptions import HostSyncError
from ..core.host_inspector import HOST_UNREACHABLE, HostInspector, HostPaths, connectivity_error
from ..core.models import (
    BootstrapResult,
    BootstrapStatus,
    ExitCode,
    Finding,
    GlobalDefaults,
    HostState,
    HostTarget,
    StepStatus,
)
from .common import confirm, console, get_store, report_error

LOCAL_NAMES = ("localhost", "local", "127.0.0.1", "::1")


def _load_defaults(store: ConfigStore, config_path: Optional[str]) -> Tuple[str, Optional[GlobalDefaults]]:
    """Active config path and its global defaults; None when absent or invalid."""
    path = store.resolve_config_path(config_path)
    if not path.is_file():
        return str(path), None
    try:
        return str(path), store.load(str(path)).defaults
    except HostSyncError as e:
        console.print(f"[yellow]⚠️  Ignoring unusable configuration: {escape(e.message)}[/yellow]")
        return str(path), None


def print_host_state(state: HostState):
    """Print the pre-flight checklist for one host."""
    title = f"🔍 {state.host}"
    if state.os_family:
        title += f" ({state.os_family}{' / ' + state.distro if state.distro else ''})"

    table = Table(title=title, show_header=True)
    table.add_column("Check", style="cyan")
    table.add_column("Status", style="white")
    table.add_column("Details", style="white")

    for name in state.installed:
        table.add_row(escape(name), "✅ OK", "")
    for finding in state.missing:
        table.add_row(finding.key, "❌ Missing", escape(finding.description))

    console.print(table)
    for warning in state.warnings:
        console.print(f"[yellow]⚠️  {escape(warning)}[/yellow]")


def print_plan(findings: List[Finding]):
    """Print the changes bootstrap is about to make."""
    table = Table(title="🛠  Planned changes", show_header=True)
    table.add_column("#", style="dim")
    table.add_column("Change", style="white")
    table.add_column("How", style="yellow")
    for index, finding in enumerate(findings, 1):
        table.add_row(str(index), escape(finding.description), escape(finding.remediation or ""))
    console.print(table)


def print_result(result: BootstrapResult):
    if result.status == BootstrapStatus.ALREADY_BOOTSTRAPPED:
        console.print(f"[green]✅ {result.host} is already bootstrapped[/green]")
        return
    if result.status == BootstrapStatus.CANCELLED:
        console.print("[yellow]No changes made[/yellow]")
        return

    for step in result.steps:
        if step.status == StepStatus.OK:
            console.print(f"[green]✅ {step.name}[/green]")
        else:
            console.print(f"[red]❌ {step.name} failed[/red]")
        if step.output:
            console.print(escape(step.output), highlight=False, soft_wrap=True)

    if result.success:
        console.print(Panel(f"[green]Bootstrap of {result.host} completed[/green]", expand=False))
    else:
        failed = ", ".join(step.name for step in result.failed_steps)
        console.print(Panel(f"[red]Bootstrap of {result.host} failed: {failed}[/red]", expand=False))


@click.command()
@click.argument("target", metavar="localhost|HOST")
@click.pass_context
def bootstrap(ctx, target):
    """Check a host for everything hostsync needs and install what is missing.

    Every change is listed and confirmed before it is made.
    """
    obj = ctx.obj
    debug = obj.get("debug", False)
    store = get_store(obj)

    config_path, defaults = _load_defaults(store, obj.get("config_path"))
    user = obj.get("user") or (defaults.remote_user if defaults else None) or getpass.getuser()
    unison_path = obj.get("unison_path") or (defaults.unison_path if defaults else None)
    remote_unison_path = (
        obj.get("unison_path")
        or (defaults.remote_unison_path if defaults else None)
        or unison_path
        or "unison"
    )

    local_paths = HostPaths.for_local(config_path, defaults, unison_path)
    if obj.get("pref_dir"):
        local_paths.pref_dir = obj["pref_dir"]
    if obj.get("ignore_file"):
        local_paths.ignore_file = obj["ignore_file"]

    inspector = HostInspector(
        local_paths=local_paths,
        remote_paths=HostPaths(unison_path=remote_unison_path),
    )
    is_local = target in LOCAL_NAMES
    host_target = HostTarget(host="localhost" if is_local else target, user=user, is_local=is_local)

    with console.status(f"Inspecting {escape(host_target.label)}..."):
        state = inspector.inspect(host_target)

    error = connectivity_error(state, user)
    if error is not None:
        report_error(error, debug)
        for finding in state.missing:
            if finding.key == HOST_UNREACHABLE and finding.remediation:
                console.print(f"[yellow]💡 {escape(finding.remediation)}[/yellow]")
        sys.exit(error.exit_code)

    print_host_state(state)

    def ask(findings: List[Finding]) -> bool:
        print_plan(findings)
        return confirm(f"Apply these {len(findings)} change(s) to {host_target.label}?")

    bootstrapper = Bootstrapper(inspector, config_store=store, confirm=ask)
    try:
        result = bootstrapper.apply(host_target, state)
    except HostSyncError as e:
        report_error(e, debug)
        sys.exit(e.exit_code)

    print_result(result)
    if result.status == BootstrapStatus.FAILED:
        sys.exit(ExitCode.GENERAL_ERROR)
