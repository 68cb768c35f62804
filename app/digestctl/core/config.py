"""Digest configuration and settings.

The configuration is a frozen pydantic model: one resolved snapshot is handed
to each traversal and digest invocation and never mutated. Runtime state such
as one-shot threshold overrides lives in ``digestctl.core.overrides``.

Configuration is stored in ~/.config/digestctl/config.toml
"""

import os
import tomllib
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Annotated, Any, Literal

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from digestctl.core.paths import get_config_path

OutputFormatName = Literal["markdown", "text", "json"]
BinaryPolicy = Literal["skip", "placeholder", "base64"]
TreeMode = Literal["full", "minimal", "none"]

DEFAULT_EXCLUDE_PATTERNS: tuple[str, ...] = (
    "node_modules/**",
    ".git/**",
    "*.log",
    "*.tmp",
    ".DS_Store",
    "Thumbs.db",
)

DEFAULT_HEADER_TEMPLATE = "==== <relPath> (<size>, <modified>) ===="


class DigestConfig(BaseModel):
    """Resolved settings for one traversal and digest run.

    Attributes:
        max_file_size: Files of this size or larger are skipped.
        max_files: Maximum number of files accepted by a traversal.
        max_total_size_bytes: Cumulative size budget of accepted files.
        max_directory_depth: Deepest directory level that is descended into.
        token_limit: Soft token budget of the digest (0 disables it).
        output_format: Default output format.
        binary_file_policy: How binary files are rendered.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    # Resource quotas
    max_file_size: Annotated[
        int,
        Field(ge=1, description="Per-file size limit in bytes"),
    ] = 10 * 1024 * 1024
    max_files: Annotated[
        int,
        Field(ge=1, description="Maximum number of files per traversal"),
    ] = 25000
    max_total_size_bytes: Annotated[
        int,
        Field(ge=1, description="Cumulative size limit in bytes"),
    ] = 512 * 1024 * 1024
    max_directory_depth: Annotated[
        int,
        Field(ge=0, description="Maximum directory depth below the root"),
    ] = 20
    token_limit: Annotated[
        int,
        Field(ge=0, description="Token budget of the digest (0 = unlimited)"),
    ] = 32000

    # Output
    output_format: Annotated[
        OutputFormatName,
        Field(description="Output format: markdown, text or json"),
    ] = "markdown"
    binary_file_policy: Annotated[
        BinaryPolicy,
        Field(description="Binary handling: skip, placeholder or base64"),
    ] = "skip"
    include_tree: Annotated[
        TreeMode,
        Field(description="Tree rendering: full, minimal or none"),
    ] = "full"
    include_summary: Annotated[bool, Field(description="Prepend the summary block")] = True
    include_metadata: Annotated[bool, Field(description="Embed metadata in JSON output")] = True
    max_selected_tree_lines: Annotated[
        int,
        Field(ge=1, description="Line cap of the minimal tree"),
    ] = 100
    output_separator: Annotated[str, Field(description="Separator between file chunks")] = "\n---\n"
    output_header_template: Annotated[
        str,
        Field(description="Per-file header with <relPath>, <size> and <modified> tokens"),
    ] = DEFAULT_HEADER_TEMPLATE

    # Filtering
    include_patterns: Annotated[tuple[str, ...], Field(description="Include globs")] = ()
    exclude_patterns: Annotated[
        tuple[str, ...],
        Field(description="Exclude globs"),
    ] = DEFAULT_EXCLUDE_PATTERNS
    filter_presets: Annotated[tuple[str, ...], Field(description="Built-in preset names")] = ()
    respect_gitignore: Annotated[bool, Field(description="Honour ignore files")] = True
    ignore_files: Annotated[
        tuple[str, ...],
        Field(description="Ignore file names read in every directory"),
    ] = (".gitignore", ".gitingestignore")

    # Tokens
    token_model: Annotated[str, Field(description="Tokenizer registry key")] = "chars-approx"
    token_divisor_overrides: dict[str, float] = Field(
        default_factory=dict,
        description="Characters per token, keyed by model name",
    )

    # Redaction
    redaction_patterns: Annotated[tuple[str, ...], Field(description="Extra secret regexes")] = ()
    redaction_placeholder: Annotated[str, Field(min_length=1)] = "[REDACTED]"
    show_redacted: Annotated[bool, Field(description="Skip redaction entirely")] = False

    # Runtime behaviour
    prompts_on_thresholds: Annotated[
        bool,
        Field(description="Ask before exceeding 80% of a quota"),
    ] = False
    concurrency: Annotated[int, Field(ge=1, le=64, description="Worker pool width")] = 8
    read_batch_size: Annotated[int, Field(ge=1, description="Directory entries per batch")] = 100
    directory_page_size: Annotated[int, Field(ge=1, description="Shallow listing page size")] = 200
    progress_interval_ms: Annotated[int, Field(ge=0, description="Progress debounce interval")] = 200
    analyze_dependencies: Annotated[bool, Field(description="Extract import references")] = True

    def with_overrides(self, **changes: Any) -> "DigestConfig":
        """Return a validated copy with the given fields replaced.

        ``None`` values are ignored so CLI flags can be passed through as-is.

        Raises:
            ConfigError: If the resulting configuration is invalid.
        """
        data = self.model_dump()
        data.update({key: value for key, value in changes.items() if value is not None})
        try:
            return DigestConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration override: {e}") from e


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigNotFoundError(ConfigError):
    """Raised when the config file is not found."""


class ConfigParseError(ConfigError):
    """Raised when the config file cannot be parsed."""


def load_config(path: Path | None = None) -> DigestConfig:
    """Load configuration from a TOML file.

    Args:
        path: Path to the config file. If None, uses the default config path.

    Returns:
        Validated DigestConfig object.

    Raises:
        ConfigNotFoundError: If the config file doesn't exist.
        ConfigParseError: If the TOML syntax is invalid.
        ConfigError: If the content doesn't match the schema.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        raise ConfigNotFoundError(f"Config not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(f"Invalid TOML syntax: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config: {e}") from e

    try:
        return DigestConfig.model_validate(data)
    except (ValueError, ValidationError) as e:
        raise ConfigError(f"Invalid config content: {e}") from e


def load_config_or_default(path: Path | None = None) -> DigestConfig:
    """Load configuration, falling back to defaults when no file exists.

    Raises:
        ConfigParseError: If the TOML syntax is invalid.
        ConfigError: If the content doesn't match the schema.
    """
    try:
        return load_config(path)
    except ConfigNotFoundError:
        return DigestConfig()


def save_config(config: DigestConfig, path: Path | None = None) -> Path:
    """Save configuration to a TOML file.

    The file is written atomically by first writing to a temporary file
    and then using os.replace() for atomic rename.

    Args:
        config: The DigestConfig object to save.
        path: Path to save the config. If None, uses the default config path.

    Returns:
        Path where the config was saved.

    Raises:
        ConfigError: If the file cannot be written.
    """
    config_path = path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(mode="json")

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="wb",
            dir=config_path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        os.replace(str(tmp_path), str(config_path))
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise ConfigError(f"Failed to write config: {e}") from e

    return config_path
