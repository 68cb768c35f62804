"""Option types and config loading shared by the scan and digest commands."""

from pathlib import Path
from typing import Annotated

import typer

from digestctl.core.config import ConfigError, DigestConfig, load_config_or_default
from digestctl.core.overrides import AutoApprovePrompter, ConsolePrompter, OverridePrompter
from digestctl.utils.formatting import print_error

IncludeOption = Annotated[
    list[str] | None,
    typer.Option("--include", "-i", help="Include glob (repeatable). Prefix with ! to exclude."),
]
ExcludeOption = Annotated[
    list[str] | None,
    typer.Option("--exclude", "-x", help="Exclude glob (repeatable). Prefix with ! for an exception."),
]
PresetOption = Annotated[
    list[str] | None,
    typer.Option("--preset", "-p", help="Filter preset: code-only, docs-only, tests-only (repeatable)."),
]
ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Config file. Defaults to the XDG config path."),
]
RootArgument = Annotated[
    Path,
    typer.Argument(help="Directory to scan.", exists=True, file_okay=False, resolve_path=True),
]


def resolve_config(
    config_path: Path | None,
    include: list[str] | None,
    exclude: list[str] | None,
    presets: list[str] | None,
    **overrides: object,
) -> DigestConfig:
    """Load the config file and apply command-line overrides.

    Command-line patterns are added to the configured ones.

    Raises:
        typer.Exit: If the configuration cannot be loaded or is invalid.
    """
    try:
        config = load_config_or_default(config_path)
        return config.with_overrides(
            include_patterns=[*config.include_patterns, *include] if include else None,
            exclude_patterns=[*config.exclude_patterns, *exclude] if exclude else None,
            filter_presets=[*config.filter_presets, *presets] if presets else None,
            **overrides,
        )
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e


def get_prompter(config: DigestConfig, interactive: bool) -> OverridePrompter:
    """Pick the threshold prompter for a command invocation."""
    if interactive or config.prompts_on_thresholds:
        return ConsolePrompter()
    return AutoApprovePrompter()
