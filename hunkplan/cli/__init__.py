"""CLI entry point for hunkplan.

This module provides the main CLI application that combines the default
plan command and the config/ignore subcommands.
"""

import typer

from hunkplan.cli.config import config_app
from hunkplan.cli.ignore import ignore_app
from hunkplan.cli.main import main_command

# Main application
app = typer.Typer(
    name="hunkplan",
    help="hunkplan: split working-tree changes into a stack of conventional commits",
    add_completion=False,
)

# Add subcommand groups
app.add_typer(ignore_app, name="ignore")
app.add_typer(config_app, name="config")

# Set the main callback for default behavior
app.callback(invoke_without_command=True)(main_command)


__all__ = [
    "app",
    "config_app",
    "ignore_app",
    "main_command",
]
