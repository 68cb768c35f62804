"""Shared rich consoles and message helpers.

Data goes to ``console`` (stdout); status messages, warnings and progress go
to ``err_console`` so digests can be piped.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from digestctl.core.theme import get_theme

if TYPE_CHECKING:
    from digestctl.traversal.models import TraversalStats


def _detect_color_system() -> str | None:
    """Detect the best color system for the current terminal.

    Returns "truecolor" for interactive terminals to enable full hex color support,
    None otherwise to let Rich auto-detect.
    """
    if sys.stdout.isatty():
        return "truecolor"
    return None


# Shared console instances (theme loaded once at import)
console = Console(theme=get_theme(), color_system=_detect_color_system())
err_console = Console(theme=get_theme(), stderr=True, color_system=_detect_color_system())


def create_stats_table(stats: TraversalStats, title: str = "Traversal Summary") -> Table:
    """Build a two-column table of traversal counters.

    Args:
        stats: Frozen traversal statistics.
        title: Table title.

    Returns:
        Rich Table with one row per counter.
    """
    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Metric", style="text")
    table.add_column("Value", style="info", justify="right")

    rows = [
        ("Files", f"{stats.total_files:,}"),
        ("Total size", f"{stats.total_size:,} B"),
        ("Directories", f"{stats.directories:,}"),
        ("Symlinks", f"{stats.symlinks:,}"),
        ("Skipped (size)", f"{stats.skipped_by_size:,}"),
        ("Skipped (total limit)", f"{stats.skipped_by_total_limit:,}"),
        ("Skipped (max files)", f"{stats.skipped_by_max_files:,}"),
        ("Skipped (depth)", f"{stats.skipped_by_depth:,}"),
        ("Skipped (ignored)", f"{stats.skipped_by_ignore:,}"),
    ]
    for label, value in rows:
        table.add_row(label, value)
    return table


def print_info(message: str) -> None:
    """Print an info message."""
    err_console.print(f"[info]{message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    err_console.print(f"[success]{message}[/]")
