"""CLI renderer for deltashell."""

from __future__ import annotations

import threading

from prompt_toolkit import PromptSession
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from deltashell.config import DEFAULT_COLOR, DeltaConfig
from deltashell.orchestrator import Event

PROMPT = ">>> "


class Renderer:
    """CLI renderer using Rich for terminal output."""

    def __init__(self, console: Console | None = None) -> None:
        self.console: Console = console or Console()
        self._prompt_session: PromptSession[str] | None = None
        self._print_lock = threading.Lock()

    def welcome(self, workspace: str, config_path: str) -> None:
        self._print("[bold blue]deltashell[/bold blue] - one prompt, every phase.")
        self._print(f"[bold]Working directory:[/bold] [cyan]{escape(workspace)}[/cyan]")
        self._print(f"[bold]Config:[/bold] [cyan]{escape(config_path)}[/cyan]")
        self._print("[dim]Use format: PHASE: command, or scp phaseA:/path phaseB:/path. Type exit to leave.[/dim]")

    def info(self, message: str) -> None:
        self._print(message)

    def error(self, message: str) -> None:
        self._print(f"[bold red]Error:[/bold red] {escape(message)}")

    def event(self, event: Event) -> None:
        """Render one orchestrator event in its phase colour."""
        if event.kind == "output" and not event.text.strip():
            self._print_text(Text("(no output)", style="dim"))
            return
        if event.kind == "error" and event.phase is None:
            self.error(event.text)
            return
        self._print_text(colorize(event.text, event.color))

    def phases(self, config: DeltaConfig) -> None:
        table = Table(title="Phases")
        table.add_column("Phase", style="bold")
        table.add_column("Target")
        table.add_column("Color")
        table.add_column("Gate")
        for name, phase in sorted(config.phases.items()):
            gate = config.logic.gates.get(name, "-")
            table.add_row(colorize(name, phase.color), escape(phase.ssh), escape(phase.color), escape(gate))
        with self._print_lock:
            self.console.print(table)

    async def get_user_input(self) -> str:
        if self._prompt_session is None:
            self._prompt_session = PromptSession()
        with patch_stdout(raw=True):
            return await self._prompt_session.prompt_async(PROMPT)

    def _print(self, message: str) -> None:
        with self._print_lock:
            self.console.print(message)

    def _print_text(self, text: Text) -> None:
        with self._print_lock:
            self.console.print(text)


def colorize(text: str, color: str = DEFAULT_COLOR) -> Text:
    return Text.from_ansi(f"\x1b[{color}m{text}\x1b[0m")
