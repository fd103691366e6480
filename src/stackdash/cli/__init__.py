"""
CLI interface for Stackdash using Typer.
"""

# Shared apps and options first; submodules register commands on them
from ._shared import app, main_callback, ProfileOption  # noqa: F401

# Import submodules to register their commands with the Typer apps
from . import dashboard  # noqa: F401
from . import config  # noqa: F401


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
