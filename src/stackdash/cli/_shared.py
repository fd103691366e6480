"""
Shared CLI state: Typer apps, console, options, and utilities.
"""

from typing import Annotated, Optional

import typer
from rich.console import Console

# Main app
app = typer.Typer(
    name="stackdash",
    help="Live dashboard for background shell tasks and Docker containers",
    no_args_is_help=False,
    invoke_without_command=True,
    rich_markup_mode="rich",
)

# Config subcommand group
config_app = typer.Typer(
    name="config",
    help="Manage configuration",
    no_args_is_help=False,
    invoke_without_command=True,
)
app.add_typer(config_app, name="config")

# Console for rich output
console = Console()

ProfileOption = Annotated[
    Optional[str],
    typer.Option(
        "--profile",
        "-p",
        help="Compose profile (default: DOCKER_PROFILE, COMPOSE_PROFILE, or 'local')",
    ),
]


@app.callback(invoke_without_command=True)
def main_callback(ctx: typer.Context):
    """Launch the dashboard when no command is given."""
    if ctx.invoked_subcommand is None:
        from ..config import build_config
        from ..tui import run_tui

        run_tui(build_config())
