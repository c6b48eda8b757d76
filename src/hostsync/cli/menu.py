"""
Arrow-key menu for picking a named command.

Key handling (:meth:`MenuState.on_key`) is a pure state transition and
rendering (:meth:`MenuState.render`) only builds a renderable, so the loop in
:func:`select_option` is the only part that touches the terminal.
"""

from dataclasses import dataclass, replace
from typing import Callable, Optional, Sequence, Tuple

import click
from rich.console import Console
from rich.live import Live
from rich.text import Text

KEYS = {
    "\x1b[A": "up",
    "\x1bOA": "up",
    "\xe0H": "up",
    "k": "up",
    "\x1b[B": "down",
    "\x1bOB": "down",
    "\xe0P": "down",
    "j": "down",
    "\r": "enter",
    "\n": "enter",
    "q": "quit",
    "\x1b": "quit",
    "\x03": "quit",
}


@dataclass(frozen=True)
class MenuState:
    """Options, the highlighted index, and whether the menu has finished."""

    options: Tuple[str, ...]
    selected: int = 0
    chosen: Optional[str] = None
    cancelled: bool = False

    @property
    def done(self) -> bool:
        return self.chosen is not None or self.cancelled

    def on_key(self, key: str) -> "MenuState":
        """Next state for a key name (``up``, ``down``, ``enter``, ``quit``) or raw key."""
        action = KEYS.get(key, key)
        if not self.options:
            return replace(self, cancelled=True)
        if action == "up":
            return replace(self, selected=(self.selected - 1) % len(self.options))
        if action == "down":
            return replace(self, selected=(self.selected + 1) % len(self.options))
        if action == "enter":
            return replace(self, chosen=self.options[self.selected])
        if action in ("quit", "esc", "q"):
            return replace(self, cancelled=True)
        return self

    def render(self, console: Console) -> Text:
        width = max(console.width - 4, 10)
        text = Text()
        text.append("Select a command (↑/↓, Enter to run, q to quit)\n", style="bold blue")
        for index, option in enumerate(self.options):
            label = option if len(option) <= width else option[: width - 1] + "…"
            if index == self.selected:
                text.append(f"❯ {label}\n", style="bold cyan")
            else:
                text.append(f"  {label}\n")
        return text


def select_option(
    options: Sequence[str],
    console: Console,
    read_key: Callable[[], str] = click.getchar,
) -> Optional[str]:
    """Show the menu until the user picks an option or cancels."""
    state = MenuState(options=tuple(options))
    if not state.options:
        return None

    with Live(state.render(console), console=console, transient=True, auto_refresh=False) as live:
        while not state.done:
            try:
                key = read_key()
            except (KeyboardInterrupt, EOFError):
                key = "quit"
            state = state.on_key(key)
            live.update(state.render(console), refresh=True)

    return state.chosen
