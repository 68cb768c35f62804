"""digestctl command-line entry point.

Builds the Typer app, wires the global --version and --verbose options and
registers the scan, digest and config commands.
"""

import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from digestctl import __version__
from digestctl.cli.commands import config, digest, scan
from digestctl.utils.formatting import err_console

app = typer.Typer(
    name="digestctl",
    help="Turn a directory tree into a single LLM-ready digest.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"digestctl version {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable debug logging.",
        ),
    ] = False,
) -> None:
    """digestctl - Directory digests for language models.

    Scan a directory with gitignore semantics, filter it with include and
    exclude globs, and assemble the selected files into one document.
    """
    configure_logging(verbose)


# Register commands
app.command(name="scan")(scan.scan_directory)
app.command(name="digest")(digest.digest_directory)
app.add_typer(config.app, name="config")


if __name__ == "__main__":
    app()
