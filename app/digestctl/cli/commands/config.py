"""Configuration commands.

Show, create and locate the digestctl config file.
"""

import json
from typing import Annotated

import typer

from digestctl.cli.options import ConfigOption
from digestctl.core.config import ConfigError, DigestConfig, load_config_or_default, save_config
from digestctl.core.paths import get_config_path
from digestctl.utils.formatting import console, print_error, print_info, print_success

app = typer.Typer(
    help="Show and manage the configuration file.",
    no_args_is_help=True,
)


@app.command()
def show(config_path: ConfigOption = None) -> None:
    """Print the effective configuration as JSON."""
    try:
        config = load_config_or_default(config_path)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    console.print_json(json.dumps(config.model_dump(mode="json")))


@app.command()
def init(
    config_path: ConfigOption = None,
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite an existing config file."),
    ] = False,
) -> None:
    """Write a config file with default values."""
    target = config_path or get_config_path()
    if target.exists() and not force:
        print_info(f"Config already exists: {target} (use --force to overwrite)")
        raise typer.Exit(code=1)
    try:
        saved = save_config(DigestConfig(), target)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    print_success(f"Config written to {saved}")


@app.command()
def path() -> None:
    """Print the default config file path."""
    typer.echo(str(get_config_path()))
