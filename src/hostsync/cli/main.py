"""
Main CLI entry point for hostsync.

Built-in subcommands (``bootstrap``, ``config``, ``status``) are resolved
first; any other name is looked up as a named command in the configuration
and run through unison.
"""

import logging
import sys
from typing import List

import click
from rich.markup import escape
from rich.panel import Panel

from ..__version__ import __version__
from ..core.exceptions import CommandNotFound, HostSyncError
from ..core.models import Configuration, ExitCode, RunOptions, RunStatus
from ..core.sync_orchestrator import SyncOrchestrator
from .bootstrap import bootstrap
from .common import (
    console,
    get_store,
    overrides_from,
    report_error,
    report_unexpected,
    setup_logging,
)
from .config import config
from .menu import select_option
from .progress_view import RichProgressReporter
from .status import status

EXIT_INTERRUPTED = 130


class SyncGroup(click.Group):
    """Group that treats unknown subcommand names as named sync commands."""

    def get_command(self, ctx, cmd_name):
        command = super().get_command(ctx, cmd_name)
        if command is not None:
            return command
        return make_named_command(cmd_name)


def make_named_command(name: str) -> click.Command:
    """Build the click command for the named sync command ``name``."""

    @click.pass_context
    def callback(ctx, extra_args, debug, force, dry_run):
        run_named_command(ctx, name, list(extra_args), debug, force, dry_run)

    return click.Command(
        name,
        callback=callback,
        params=[
            click.Option(["--debug"], is_flag=True, help="Enable unison debug output"),
            click.Option(["--force"], is_flag=True, help="Force newer files to win"),
            click.Option(["--dry-run"], is_flag=True, help="Show the unison command only"),
            click.Argument(["extra_args"], nargs=-1, type=click.UNPROCESSED),
        ],
        help=f"Run the '{name}' sync command. Extra arguments are passed to unison.",
        # No -h: unison flags such as -path must reach extra_args intact
        context_settings={
            "ignore_unknown_options": True,
            "allow_extra_args": True,
            "help_option_names": ["--help"],
        },
    )


def _load_for_named(ctx, name: str) -> Configuration:
    """Load the config for a named command, distinguishing missing config from unknown name."""
    store = get_store(ctx.obj)
    path = store.resolve_config_path(ctx.obj.get("config_path"))
    if not path.is_file():
        console.print(
            f"[red]❌ Unknown command '{escape(name)}' and no configuration at {escape(str(path))}[/red]"
        )
        console.print("[yellow]💡 Run 'hostsync config init' first[/yellow]")
        sys.exit(ExitCode.CONFIG_ERROR)

    loaded = store.load(str(path))
    if loaded.get(name) is None:
        raise CommandNotFound(name, loaded.command_names())
    return loaded


def run_named_command(ctx, name: str, extra_args: List[str], debug: bool, force: bool, dry_run: bool):
    """Run one named sync command and exit with its status."""
    obj = ctx.obj
    debug = debug or obj.get("debug", False)
    force = force or obj.get("force", False)
    dry_run = dry_run or obj.get("dry_run", False)
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)

    reporter = RichProgressReporter(console, title=f"Synchronizing {name}")
    try:
        try:
            loaded = _load_for_named(ctx, name)
            orchestrator = SyncOrchestrator(loaded, config_store=get_store(obj), reporter=reporter)
            options = RunOptions(debug=debug, force=force, dry_run=dry_run, extra_args=extra_args)
            result = orchestrator.run_command(name, options, overrides_from(obj))
        finally:
            reporter.close()
    except HostSyncError as e:
        report_error(e, debug)
        sys.exit(e.exit_code)
    except (OSError, ValueError) as e:
        report_unexpected(e, debug)
        sys.exit(ExitCode.GENERAL_ERROR)

    for warning in orchestrator.warnings:
        console.print(f"[yellow]⚠️  {escape(warning)}[/yellow]")

    if result.status == RunStatus.DRY_RUN:
        console.print(f"[blue]🔍 Dry run for '{escape(name)}' on {escape(result.host or '')}, would execute:[/blue]")
        console.print(escape(result.command), soft_wrap=True, highlight=False)
        for root in result.roots:
            console.print(f"  root = {escape(root)}", soft_wrap=True, highlight=False)
        return

    if result.status == RunStatus.CANCELLED:
        console.print(f"\n[yellow]⚠️  Sync of '{escape(name)}' interrupted after {result.duration:.1f}s[/yellow]")
        sys.exit(EXIT_INTERRUPTED)

    console.print(Panel(
        f"[green]✅ '{escape(name)}' synchronized with {escape(result.host or '')}[/green]\n"
        f"Files processed: {result.files_processed}\n"
        f"Duration: {result.duration:.1f}s",
        expand=False,
    ))


def _choose_interactively(ctx):
    """Arrow-key menu over the named commands; help if that is not possible."""
    if not (sys.stdin.isatty() and sys.stdout.isatty()):
        console.print(escape(ctx.get_help()), highlight=False)
        return

    store = get_store(ctx.obj)
    try:
        loaded = store.load(ctx.obj.get("config_path"))
    except HostSyncError:
        console.print(escape(ctx.get_help()), highlight=False)
        return

    choice = select_option(loaded.command_names(), console)
    if choice is not None:
        run_named_command(ctx, choice, [], False, False, False)


@click.group(
    cls=SyncGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", is_flag=True, help="Show version and exit")
@click.option("--debug", is_flag=True, help="Enable debug logging and unison debug output")
@click.option("--force", is_flag=True, help="Force newer files to win conflicts")
@click.option("--dry-run", is_flag=True, help="Show the unison command without running it")
@click.option("--user", type=str, help="Remote user")
@click.option("--ip", type=str, help="Use this host instead of the configured ones")
@click.option("--unison-path", type=str, help="Path to the unison binary")
@click.option("--pref-dir", type=str, help="Unison preferences directory")
@click.option("--ignore-file", type=str, help="Ignore pattern file")
@click.option("--local-path", type=str, help="Local root override")
@click.option("--remote-path", type=str, help="Remote root override")
@click.option("--config", "config_path", type=str, help="Path to configuration file")
@click.pass_context
def cli(ctx, version, debug, force, dry_run, user, ip, unison_path, pref_dir,
        ignore_file, local_path, remote_path, config_path):
    """hostsync - named two-way directory synchronization with unison.

    Run a named command from the configuration, or one of the built-in
    commands below.
    """
    if version:
        console.print(f"hostsync version {__version__}")
        sys.exit(0)

    setup_logging(debug)

    ctx.ensure_object(dict)
    ctx.obj.update({
        "debug": debug,
        "force": force,
        "dry_run": dry_run,
        "user": user,
        "ip": ip,
        "unison_path": unison_path,
        "pref_dir": pref_dir,
        "ignore_file": ignore_file,
        "local_path": local_path,
        "remote_path": remote_path,
        "config_path": config_path,
    })

    if ctx.invoked_subcommand is None:
        _choose_interactively(ctx)


cli.add_command(bootstrap)
cli.add_command(config)
cli.add_command(status)


def main():
    """Main entry point for the CLI."""
    try:
        rv = cli.main(standalone_mode=False)
    except (KeyboardInterrupt, click.exceptions.Abort):
        console.print("\n[yellow]⚠️  Operation interrupted by user[/yellow]")
        sys.exit(EXIT_INTERRUPTED)
    except click.ClickException as e:
        e.show()
        sys.exit(ExitCode.GENERAL_ERROR)
    sys.exit(rv if isinstance(rv, int) else 0)


if __name__ == "__main__":
    main()
