"""Rich rendering of unison progress."""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from ..core.progress import ProgressState
from ..core.unison_runner import ProgressReporter

_MAX_LINE = 60


def _shorten(text: str, limit: int = _MAX_LINE) -> str:
    if len(text) <= limit:
        return text
    return "…" + text[-(limit - 1):]


class RichProgressReporter(ProgressReporter):
    """Spinner while unison runs, then a per-file bar over its output."""

    def __init__(self, console: Console, title: str = "Synchronizing"):
        self.console = console
        self.title = title
        self._spinner: Optional[Progress] = None
        self._spinner_task: Optional[TaskID] = None
        self._bar: Optional[Progress] = None
        self._bar_task: Optional[TaskID] = None

    def output_line(self, line: str) -> None:
        if self._spinner is None:
            self._spinner = Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                TimeElapsedColumn(),
                console=self.console,
                transient=True,
            )
            self._spinner.start()
            self._spinner_task = self._spinner.add_task(f"{self.title}...", total=None)

        if line.strip():
            self._spinner.update(
                self._spinner_task,
                description=f"{self.title}: {escape(_shorten(line.strip()))}",
            )

    def _stop_spinner(self) -> None:
        if self._spinner is not None:
            self._spinner.stop()
            self._spinner = None

    def start(self, total: int) -> None:
        self._stop_spinner()
        self._bar = Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("{task.completed}/{task.total}"),
            TimeElapsedColumn(),
            console=self.console,
        )
        self._bar.start()
        self._bar_task = self._bar.add_task("Starting", total=max(total, 0))

    def phase(self, text: str) -> None:
        if self._bar is not None:
            self._bar.update(self._bar_task, description=f"[cyan]{escape(text)}[/cyan]")

    def item(self, state: ProgressState) -> None:
        if self._bar is not None:
            self._bar.update(
                self._bar_task,
                completed=state.processed,
                description=escape(_shorten(state.current_file, 40)),
            )

    def finish(self, state: ProgressState) -> None:
        if self._bar is None:
            return
        if state.total <= 0:
            # Nothing to do: show a full bar
            self._bar.update(self._bar_task, total=1, completed=1, description="Nothing to do")
        else:
            self._bar.update(self._bar_task, completed=state.processed, description="Done")
        self._bar.stop()
        self._bar = None

    def close(self) -> None:
        """Stop any live display; safe to call more than once."""
        self._stop_spinner()
        if self._bar is not None:
            self._bar.stop()
            self._bar = None
