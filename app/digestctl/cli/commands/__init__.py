"""CLI commands for digestctl."""

from digestctl.cli.commands import config, digest, scan

__all__ = ["config", "digest", "scan"]
