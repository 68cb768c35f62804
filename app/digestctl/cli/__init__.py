"""CLI package for digestctl.

This package contains the Typer application and all subcommands.
"""

from digestctl.cli.main import app

__all__ = ["app"]
