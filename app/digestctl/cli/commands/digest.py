"""Digest command implementation.

Scans a directory and assembles the selected files into one document.
"""

from enum import Enum
from pathlib import Path
from typing import Annotated

import typer
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from digestctl.assembly import AssemblyPipeline
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
from digestctl.core.progress import ProgressEvent
from digestctl.traversal import TraversalEngine
from digestctl.utils.formatting import err_console, print_error, print_info, print_warning


class DigestFormat(str, Enum):
    """Digest output formats."""

    MARKDOWN = "markdown"
    TEXT = "text"
    JSON = "json"


def digest_directory(
    root: RootArgument = Path("."),
    output_format: Annotated[
        DigestFormat | None,
        typer.Option(
            "--format",
            "-f",
            help="Output format: markdown, text or json. Defaults to the configured format.",
            case_sensitive=False,
        ),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the digest to a file instead of stdout."),
    ] = None,
    include: IncludeOption = None,
    exclude: ExcludeOption = None,
    preset: PresetOption = None,
    token_limit: Annotated[
        int | None,
        typer.Option("--token-limit", "-t", help="Token budget for the digest.", min=0),
    ] = None,
    concurrency: Annotated[
        int | None,
        typer.Option("--concurrency", "-j", help="Files read in parallel (1-64).", min=1, max=64),
    ] = None,
    show_redacted: Annotated[
        bool,
        typer.Option("--show-redacted", help="Do not redact secrets."),
    ] = False,
    interactive: Annotated[
        bool,
        typer.Option("--interactive", help="Ask before crossing size, file count and token limits."),
    ] = False,
    config_path: ConfigOption = None,
) -> None:
    """Build a digest of a directory.

    Examples:
        digestctl digest                          # Markdown digest on stdout
        digestctl digest src -o digest.md         # Write to a file
        digestctl digest . --preset code-only -f json
        digestctl digest . --token-limit 128000 --interactive
    """
    config = resolve_config(
        config_path,
        include,
        exclude,
        preset,
        output_format=output_format.value if output_format else None,
        token_limit=token_limit,
        concurrency=concurrency,
        show_redacted=show_redacted or None,
    )
    prompter = get_prompter(config, interactive)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TimeElapsedColumn(),
        console=err_console,
        transient=True,
        disable=interactive or config.prompts_on_thresholds or output is None,
    ) as progress:
        task = progress.add_task("Scanning", total=100)

        def on_progress(event: ProgressEvent) -> None:
            progress.update(
                task,
                description=event.message or event.op.capitalize(),
                completed=event.percent if event.percent is not None else 0,
            )

        engine = TraversalEngine(prompter=prompter, progress_sink=on_progress)
        pipeline = AssemblyPipeline(prompter=prompter, progress_sink=on_progress)
        try:
            traversal = engine.scan_root(root, config)
            digest = pipeline.generate(traversal.files(), config, traversal=traversal)
        except OperationCancelledError as e:
            print_warning(str(e))
            raise typer.Exit(code=130) from e
        except KeyboardInterrupt as e:
            print_warning("Digest cancelled")
            raise typer.Exit(code=130) from e
        except DigestError as e:
            print_error(str(e))
            raise typer.Exit(code=1) from e

    for warning in digest.warnings:
        print_warning(warning)
    for error in digest.errors:
        print_error(f"{error.path}: {error.message}")

    if output is None:
        typer.echo(digest.content)
        return

    output = output.resolve()
    if output.is_dir():
        print_error(f"Output path is a directory: {output}")
        raise typer.Exit(code=1)
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(digest.content, encoding="utf-8")
    except OSError as e:
        print_error(f"Failed to write digest: {e}")
        raise typer.Exit(code=1) from e
    print_info(
        f"Digest of {len(digest.output_objects)} files written to {output} "
        f"({digest.token_estimate:,} tokens)"
    )
