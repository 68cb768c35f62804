"""Scan command implementation.

Runs a traversal and reports what a digest would contain.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Annotated

import typer

from digestctl.assembly.summary import render_node_tree
from digestctl.cli.options import (
    ConfigOption,
    ExcludeOption,
    IncludeOption,
    PresetOption,
    RootArgument,
    get_prompter,
    resolve_config,
)
from digestctl.core.errors import DigestError, OperationCancelledError
from digestctl.traversal import ContentNode, TraversalEngine
from digestctl.utils.formatting import console, create_stats_table, print_error, print_warning


class OutputFormat(str, Enum):
    """Output format options."""

    TABLE = "table"
    JSON = "json"


def scan_directory(
    root: RootArgument = Path("."),
    output_format: Annotated[
        OutputFormat,
        typer.Option(
            "--format",
            "-f",
            help="Output format: table or json.",
            case_sensitive=False,
        ),
    ] = OutputFormat.TABLE,
    include: IncludeOption = None,
    exclude: ExcludeOption = None,
    preset: PresetOption = None,
    shallow: Annotated[
        bool,
        typer.Option("--shallow", help="List a single directory level instead of recursing."),
    ] = False,
    offset: Annotated[int, typer.Option("--offset", help="First entry of the shallow page.", min=0)] = 0,
    page_size: Annotated[
        int | None,
        typer.Option("--page-size", help="Entries per shallow page.", min=1),
    ] = None,
    interactive: Annotated[
        bool,
        typer.Option("--interactive", help="Ask before crossing size and file count limits."),
    ] = False,
    config_path: ConfigOption = None,
) -> None:
    """Scan a directory with ignore files, filters and quotas applied.

    Examples:
        digestctl scan                        # Scan the current directory
        digestctl scan src --preset code-only # Only source files below src
        digestctl scan . --shallow --page-size 50
        digestctl scan . --format json        # Output as JSON
    """
    config = resolve_config(config_path, include, exclude, preset)
    engine = TraversalEngine(prompter=get_prompter(config, interactive))

    try:
        if shallow:
            page = engine.scan_directory_shallow(root, config, offset=offset, page_size=page_size)
            _print_page(page.items, page.total, page.offset, page.has_more, output_format)
            return
        result = engine.scan_root(root, config)
    except OperationCancelledError as e:
        print_warning(str(e))
        raise typer.Exit(code=130) from e
    except DigestError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    if output_format == OutputFormat.JSON:
        data = {
            "root": str(root),
            "stats": result.stats.to_dict(),
            "files": [node.rel_path for node in result.files()],
        }
        console.print_json(json.dumps(data))
        return

    tree = render_node_tree(result.nodes)
    if tree:
        console.print(tree, style="text", highlight=False, markup=False)
    console.print(create_stats_table(result.stats))
    for warning in result.stats.warnings:
        print_warning(warning)


def _print_page(
    items: list[ContentNode],
    total: int,
    offset: int,
    has_more: bool,
    output_format: OutputFormat,
) -> None:
    if output_format == OutputFormat.JSON:
        data = {
            "offset": offset,
            "total": total,
            "has_more": has_more,
            "items": [node.to_dict() for node in items],
        }
        console.print_json(json.dumps(data))
        return

    for node in items:
        style = f"entry.{node.kind.value}"
        suffix = "/" if node.is_directory else ""
        console.print(f"[{style}]{node.name}{suffix}[/]", highlight=False)
    shown = f"{offset + 1}-{offset + len(items)}" if items else "0"
    console.print(f"\n[muted]Showing {shown} of {total} entries[/]")
    if has_more:
        console.print(f"[muted]Next page: --offset {offset + len(items)}[/]")
