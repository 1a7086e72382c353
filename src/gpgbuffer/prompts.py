"""
Interactive prompts used by the core.

The core never talks to a terminal directly. It is handed a
PromptProvider; the command line uses ConsolePrompt, tests pass a
scripted one. Every call blocks until the user answers; there is no
timeout and no way to cancel.
"""

from __future__ import annotations

from typing import Optional, Protocol

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt


class PromptProvider(Protocol):
    """Capability for talking to the user synchronously."""

    def show(self, lines: list[str]) -> None:
        """Display informational lines."""

    def ask(self, message: str) -> str:
        """Ask a question and return the raw answer."""

    def warn(self, message: str) -> None:
        """Display a recoverable warning."""

    def notify(self, message: str) -> None:
        """Display a failure notice and wait for acknowledgement."""


class ConsolePrompt:
    """PromptProvider backed by a Rich console on stderr.

    Failure notices only wait for Enter when the console is interactive;
    piped runs print the notice and carry on.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console(stderr=True)

    def show(self, lines: list[str]) -> None:
        for line in lines:
            self.console.print(line, markup=False, highlight=False)

    def ask(self, message: str) -> str:
        return Prompt.ask(message, console=self.console, default="", show_default=False)

    def warn(self, message: str) -> None:
        self.console.print(f"[bold yellow]Warning:[/] {escape(message)}", soft_wrap=True)

    def notify(self, message: str) -> None:
        self.console.print(f"[bold red]Error:[/] {escape(message)}", soft_wrap=True)
        if self.console.is_interactive:
            Prompt.ask("  Press Enter to continue", console=self.console, default="", show_default=False)
