"""Typer entrypoint for deltashell."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from deltashell.config import DeltaConfig, Settings, load_config, load_settings
from deltashell.errors import ConfigurationError
from deltashell.logging_utils import configure_logging
from deltashell.orchestrator import DeltaShell, Event

from .interactive import InteractiveCli
from .render import Renderer

app = typer.Typer(name="deltashell", help="Run commands across phases over persistent sessions.", add_completion=False)

WorkspaceOption = typer.Option(None, "--workspace", "-w", help="Workspace holding the config and .env")
ConfigOption = typer.Option(None, "--config", "-c", help="Phase config file (default: <workspace>/.deltarc.json)")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    workspace: Path | None = WorkspaceOption,
    config: Path | None = ConfigOption,
) -> None:
    if ctx.invoked_subcommand is None:
        shell(workspace=workspace, config=config)


@app.command()
def shell(
    workspace: Path | None = WorkspaceOption,
    config: Path | None = ConfigOption,
) -> None:
    """Start the interactive multi-phase prompt."""
    renderer = Renderer()
    workspace_path, settings, delta_config, config_path = _load(workspace, config, renderer)
    configure_logging(profile="repl", level=settings.log_level)
    renderer.welcome(str(workspace_path), str(config_path))
    delta = DeltaShell(delta_config, settings, renderer.event)
    asyncio.run(InteractiveCli(delta, renderer).run())


@app.command()
def run(
    line: str = typer.Argument(..., help='One input line, e.g. "BUILD: make test"'),
    workspace: Path | None = WorkspaceOption,
    config: Path | None = ConfigOption,
) -> None:
    """Run a single line and wait for its result."""
    renderer = Renderer()
    _, settings, delta_config, _ = _load(workspace, config, renderer)
    configure_logging(level=settings.log_level)
    failed = asyncio.run(_run_once(delta_config, settings, renderer, line))
    if failed:
        raise typer.Exit(1)


@app.command()
def phases(
    workspace: Path | None = WorkspaceOption,
    config: Path | None = ConfigOption,
) -> None:
    """List configured phases, their targets and gates."""
    renderer = Renderer()
    _, settings, delta_config, _ = _load(workspace, config, renderer)
    configure_logging(level=settings.log_level)
    renderer.phases(delta_config)


async def _run_once(config: DeltaConfig, settings: Settings, renderer: Renderer, line: str) -> bool:
    errors = 0

    def _emit(event: Event) -> None:
        nonlocal errors
        if event.kind in ("error", "blocked"):
            errors += 1
        renderer.event(event)

    delta = DeltaShell(config, settings, _emit)
    try:
        result = await delta.handle(line, wait=True)
    finally:
        await delta.close()
    return errors > 0 or (result is not None and not result.ok)


def _load(
    workspace: Path | None, config: Path | None, renderer: Renderer
) -> tuple[Path, Settings, DeltaConfig, Path]:
    workspace_path = (workspace or Path.cwd()).resolve()
    config_path = config
    try:
        settings = load_settings(workspace_path)
        config_path = config or settings.resolve_config_path(workspace_path)
        delta_config = load_config(config_path)
    except ConfigurationError as exc:
        renderer.error(str(exc))
        raise typer.Exit(1) from exc
    return workspace_path, settings, delta_config, config_path
