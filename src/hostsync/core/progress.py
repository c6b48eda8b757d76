"""
Parsing of unison's text output into progress events.

Unison's human-readable output is not a stable interface, so every pattern
here is matched loosely and lines that match nothing are ignored.
"""

import re
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, List, Optional

# Greedy name: the last direction marker on the line ends the file name
_COPY = re.compile(
    r"^\s*(?:\[BGN\]\s+)?Copying\s+(?:(?P<name>.+)\s+(?:-+>|<-+|from)\s.*|(?P<bare>.+))$"
)
_SKIP = re.compile(r"^\s*(?:\[\w+\]\s+)?Skipping\s+(?P<name>.+?)(?::\s.*)?$")
_SUMMARY = re.compile(r"Synchronization (?:complete|incomplete)")

PHASES = (
    "Looking for changes",
    "Reconciling changes",
    "Propagating updates",
    "Nothing to do",
)

COPY = "copy"
SKIP = "skip"
PHASE = "phase"
SUMMARY = "summary"


@dataclass
class OutputEvent:
    """One recognised line of unison output."""

    kind: str
    text: str


@dataclass
class ProgressState:
    """Progress of one run. Owned by the runner and reset for every run."""

    total: int = 0
    processed: int = 0
    current_file: str = ""
    phase: str = ""
    started_at: float = field(default_factory=time.time)

    @property
    def elapsed(self) -> float:
        return time.time() - self.started_at

    @property
    def percentage(self) -> float:
        """Completion percentage; nothing to do counts as done."""
        if self.total <= 0:
            return 100.0
        return min(100.0, self.processed * 100.0 / self.total)


def parse_line(line: str) -> Optional[OutputEvent]:
    """Classify a single output line, or return None if it is not recognised."""
    match = _COPY.match(line)
    if match:
        return OutputEvent(COPY, (match.group("name") or match.group("bare")).strip())

    match = _SKIP.match(line)
    if match:
        return OutputEvent(SKIP, match.group("name").strip())

    if _SUMMARY.search(line):
        return OutputEvent(SUMMARY, line.strip())

    for phase in PHASES:
        if phase in line:
            return OutputEvent(PHASE, phase)

    return None


def iter_events(lines: Iterable[str]) -> Iterator[OutputEvent]:
    for line in lines:
        event = parse_line(line)
        if event is not None:
            yield event


def count_items(lines: Iterable[str]) -> int:
    """First pass: number of copy/skip lines."""
    return sum(1 for e in iter_events(lines) if e.kind in (COPY, SKIP))


class ProgressTracker:
    """Replays captured output as progress updates.

    ``on_item`` is called once per copy/skip line with the updated state,
    ``on_phase`` whenever unison announces a new phase.
    """

    def __init__(
        self,
        on_item: Optional[Callable[[ProgressState], None]] = None,
        on_phase: Optional[Callable[[str], None]] = None,
    ):
        self.on_item = on_item
        self.on_phase = on_phase
        self.state = ProgressState()

    def replay(self, output: str) -> ProgressState:
        """Run both passes over ``output`` and return the final state."""
        lines: List[str] = output.splitlines()
        self.state = ProgressState(total=count_items(lines))

        for event in iter_events(lines):
            if event.kind in (COPY, SKIP):
                if self.state.processed >= self.state.total:
                    continue
                self.state.processed += 1
                self.state.current_file = event.text
                if self.on_item:
                    self.on_item(self.state)
            elif event.kind == PHASE:
                self.state.phase = event.text
                if self.on_phase:
                    self.on_phase(event.text)

        return self.state
