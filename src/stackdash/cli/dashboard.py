"""
Dashboard commands: ui, tasks, containers.
"""

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich import print as rprint
from rich.table import Table

from ._shared import app, console, ProfileOption


@app.command()
def ui(
    profile: ProfileOption = None,
    refresh_ms: Annotated[
        Optional[int], typer.Option("--refresh-ms", min=50, help="Container refresh period in milliseconds")
    ] = None,
    max_log_lines: Annotated[
        Optional[int], typer.Option("--max-log-lines", min=1, help="Lines kept per task and in the log view")
    ] = None,
    no_compose_prompt: Annotated[
        bool, typer.Option("--no-compose-prompt", help="Don't offer docker compose up/restart at startup")
    ] = False,
    log_file: Annotated[
        Optional[Path], typer.Option("--log-file", help="Diagnostic log file (default: ~/.stackdash/logs/tui.log)")
    ] = None,
):
    """Run the dashboard (requires a terminal)."""
    from ..config import build_config
    from ..tui import run_tui

    overrides = {"refresh_ms": refresh_ms, "max_log_lines": max_log_lines}
    if no_compose_prompt:
        overrides["auto_compose_up"] = False

    run_tui(build_config(profile=profile, overrides=overrides), log_file=log_file)


@app.command()
def tasks(profile: ProfileOption = None):
    """List the background tasks resolved for this project."""
    from ..config import build_config
    from ..logging_config import setup_cli_logging

    setup_cli_logging()
    config = build_config(profile=profile)

    rprint(f"[bold]Project:[/bold] {config.cwd}  [bold]Profile:[/bold] {config.profile}")
    if config.loaded_env_files:
        rprint(f"[dim]Env files: {', '.join(config.loaded_env_files)}[/dim]")

    if not config.tasks:
        rprint("[dim]No tasks configured[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Name", style="cyan")
    table.add_column("Command")
    for task in config.tasks:
        table.add_row(task.name, task.cmd)
    console.print(table)


@app.command()
def containers(profile: ProfileOption = None):
    """Print one container snapshot. Exits 1 if docker is unavailable."""
    from ..config import build_config
    from ..docker_engine import EngineError, pick_best_public_port
    from ..implementations import RealDockerEngine
    from ..logging_config import setup_cli_logging
    from ..status_constants import get_container_badge

    setup_cli_logging()
    config = build_config(profile=profile)
    engine = RealDockerEngine(config.cwd, docker_bin=config.docker_bin, env=config.env)
    meta = engine.detect()

    if not meta.available:
        rprint("[red]Docker unavailable.[/red] Colima: colima start ; docker context use colima ; docker ps")
        raise typer.Exit(1)

    try:
        snapshot = engine.list_containers()
    except EngineError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    rprint(f"[bold]Docker backend:[/bold] {meta.backend} | [bold]Context:[/bold] {meta.context_name}")
    if not snapshot:
        rprint("[dim]No containers[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("")
    table.add_column("Name", style="cyan")
    table.add_column("State")
    table.add_column("Status")
    table.add_column("Port", justify="right")
    for summary, ports in snapshot:
        port = pick_best_public_port(ports)
        table.add_row(
            get_container_badge(summary.state),
            summary.name,
            summary.state,
            " ".join(summary.status.split()),
            str(port) if port is not None else "-",
        )
    console.print(table)
