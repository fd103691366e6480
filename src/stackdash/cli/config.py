"""
Config commands: init, show, path.
"""

from typing import Annotated

import typer
from rich import print as rprint

from ._shared import config_app


CONFIG_TEMPLATE = """\
# Stackdash configuration
# Location: ~/.stackdash/config.yaml
#
# Environment variables (including values from the project's .env and
# .env.<profile> files) take precedence over this file.

# Lines kept per task and in the log view (MAX_LOG_LINES)
# max_log_lines: 1200

# Container list refresh period in milliseconds (REFRESH_MS)
# refresh_ms: 1000

# Lines of history requested when following container logs (LOG_TAIL)
# log_tail: 200

# Docker CLI binary (DOCKER_BIN)
# docker_bin: docker

# Containers whose presence means the stack is already running
# db_container: supabase-db
# storage_container: supabase-storage

# Offer docker compose up/restart when the dashboard starts
# auto_compose_up: true
"""

# Keys shown by `config show`, in template order
KNOWN_KEYS = [
    "max_log_lines",
    "refresh_ms",
    "log_tail",
    "docker_bin",
    "db_container",
    "storage_container",
    "auto_compose_up",
]


@config_app.callback(invoke_without_command=True)
def config_default(ctx: typer.Context):
    """Show current configuration (default when no subcommand given)."""
    if ctx.invoked_subcommand is None:
        _config_show()


@config_app.command("init")
def config_init(
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Overwrite existing config file")
    ] = False,
):
    """Create a config file with documented defaults.

    Creates ~/.stackdash/config.yaml with all options commented out.
    Use --force to overwrite an existing config file.
    """
    from .. import config as config_module

    path = config_module.CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    if path.exists() and not force:
        rprint(f"[yellow]Config file already exists:[/yellow] {path}")
        rprint("[dim]Use --force to overwrite[/dim]")
        raise typer.Exit(1)

    path.write_text(CONFIG_TEMPLATE)
    rprint(f"[green]✓[/green] Created config file: [bold]{path}[/bold]")
    rprint("[dim]Edit to customize your settings[/dim]")


@config_app.command("show")
def config_show():
    """Show current configuration."""
    _config_show()


@config_app.command("path")
def config_path():
    """Print the config file path."""
    from .. import config as config_module

    print(config_module.CONFIG_PATH)


def _config_show():
    """Internal function to display current config."""
    from .. import config as config_module

    path = config_module.CONFIG_PATH
    if not path.exists():
        rprint(f"[dim]No config file found at {path}[/dim]")
        rprint("[dim]Run 'stackdash config init' to create one[/dim]")
        return

    config = config_module.load_config()
    if not config:
        rprint(f"[dim]Config file is empty: {path}[/dim]")
        return

    rprint(f"[bold]Configuration[/bold] ({path}):\n")
    for key in KNOWN_KEYS:
        if key in config:
            rprint(f"  {key}: {config[key]}")

    unknown = sorted(k for k in config if k not in KNOWN_KEYS)
    for key in unknown:
        rprint(f"  [yellow]{key}: {config[key]}[/yellow] [dim](unknown key)[/dim]")
