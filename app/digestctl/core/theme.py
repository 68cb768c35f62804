"""Console colors for digestctl.

Every color has a built-in default on ``ThemeColors``. A ``[colors]`` table
in ``~/.config/digestctl/theme.toml`` may replace any of them; an invalid
table is ignored as a whole.
"""

import logging
import tomllib
from functools import cache
from pathlib import Path
from typing import Annotated, cast

from pydantic import BaseModel, BeforeValidator, ConfigDict, ValidationError
from rich.theme import Theme

from digestctl.core.paths import get_theme_path

logger = logging.getLogger(__name__)

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def _check_hex(value: object) -> str:
    """Normalize and validate a ``#RGB`` or ``#RRGGBB`` color."""
    if not isinstance(value, str):
        msg = "color must be a string"
        raise ValueError(msg)
    color = value.strip()
    if not color.startswith("#"):
        msg = "color must start with '#'"
        raise ValueError(msg)
    if len(color) not in (4, 7):
        msg = "color must be #RGB or #RRGGBB format"
        raise ValueError(msg)
    if not set(color[1:]) <= _HEX_DIGITS:
        msg = f"invalid hex color '{color}'"
        raise ValueError(msg)
    return color


HexColor = Annotated[str, BeforeValidator(_check_hex)]


class ThemeColors(BaseModel):
    """Named colors used by the console helpers and listings."""

    model_config = ConfigDict(extra="forbid")

    text: HexColor = "#ffffff"
    muted: HexColor = "#b2bec3"
    header: HexColor = "#69B9A1"
    border: HexColor = "#29526d"

    success: HexColor = "#03b971"
    warning: HexColor = "#f5b332"
    error: HexColor = "#f53263"
    info: HexColor = "#0ec1c8"

    # Tree and listing entries, keyed like NodeKind values
    directory: HexColor = "#0e8ac8"
    file: HexColor = "#ffffff"
    symlink: HexColor = "#d44ebc"


# Style modifiers applied on top of a color
_EMPHASIS: dict[str, str] = {
    "error": "bold",
    "entry.directory": "bold",
    "entry.symlink": "italic",
    "bold_header": "bold",
}

_ENTRY_KINDS = ("directory", "file", "symlink")


def _load_toml_colors(path: Path) -> dict[str, str] | None:
    """Read the ``[colors]`` table of a theme file.

    Returns:
        Color names mapped to their string values, or None when the file is
        missing or unreadable.
    """
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        return None
    except (tomllib.TOMLDecodeError, OSError) as e:
        logger.warning("Ignoring theme file %s: %s", path, e)
        return None

    table: object = data.get("colors", {})
    if not isinstance(table, dict):
        logger.warning("Theme file %s has no usable [colors] table", path)
        return None
    return {k: v for k, v in cast(dict[str, object], table).items() if isinstance(v, str)}


def load_theme(path: Path | None = None) -> ThemeColors:
    """Build theme colors from the defaults and an optional user file."""
    overrides = _load_toml_colors(path or get_theme_path())
    if not overrides:
        return ThemeColors()
    try:
        return ThemeColors.model_validate(overrides)
    except ValidationError as e:
        logger.warning("Theme validation failed, using defaults: %s", e)
        return ThemeColors()


def get_rich_theme(colors: ThemeColors | None = None) -> Theme:
    """Map theme colors to rich style names.

    Args:
        colors: Colors to use. Loaded from the user theme when omitted.

    Returns:
        A rich Theme with base styles, ``bold_header`` and ``entry.<kind>``.
    """
    colors = colors or load_theme()
    palette = colors.model_dump()

    styles = dict(palette)
    styles["bold_header"] = colors.header
    styles.update({f"entry.{kind}": palette[kind] for kind in _ENTRY_KINDS})
    for name, modifier in _EMPHASIS.items():
        styles[name] = f"{modifier} {styles[name]}"
    return Theme(styles)


@cache
def get_theme() -> Theme:
    """Return the process-wide theme, loading it on first use."""
    return get_rich_theme()
