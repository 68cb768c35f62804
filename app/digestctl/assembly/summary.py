"""Summary text and ASCII tree rendering."""

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

from digestctl.core.config import DigestConfig
from digestctl.traversal.models import ContentNode, TraversalStats

BRANCH = "├── "
LAST_BRANCH = "└── "
PIPE = "│   "
SPACE = "    "
TRUNCATED = "... (truncated)"

_SIZE_UNITS = ("KB", "MB", "GB", "TB")


def human_size(size: int) -> str:
    """Format a byte count for humans.

    Examples:
        >>> human_size(512)
        '512 B'
        >>> human_size(1536)
        '1.5 KB'
    """
    if size < 1024:
        return f"{size} B"
    value = float(size)
    unit = _SIZE_UNITS[0]
    for unit in _SIZE_UNITS:
        value /= 1024
        if value < 1024:
            break
    return f"{value:.1f} {unit}"


# =============================================================================
# Trees
# =============================================================================


def render_node_tree(nodes: Sequence[ContentNode]) -> str:
    """Render a traversal forest with box-drawing connectors."""
    lines: list[str] = []

    def walk(level: Sequence[ContentNode], prefix: str) -> None:
        for index, node in enumerate(level):
            last = index == len(level) - 1
            suffix = "/" if node.is_directory else ""
            lines.append(f"{prefix}{LAST_BRANCH if last else BRANCH}{node.name}{suffix}")
            if node.children:
                walk(node.children, prefix + (SPACE if last else PIPE))

    walk(nodes, "")
    return "\n".join(lines)


def _build_trie(paths: Iterable[str]) -> dict[str, Any]:
    trie: dict[str, Any] = {}
    for path in paths:
        level = trie
        for segment in path.split("/"):
            level = level.setdefault(segment, {})
    return trie


def render_path_tree(paths: Iterable[str], max_lines: int | None = None) -> str:
    """Render relative file paths as a tree.

    Args:
        paths: POSIX paths relative to the scan root.
        max_lines: Line cap; the output ends with a truncation marker when hit.

    Returns:
        The rendered tree.
    """
    lines: list[str] = []
    truncated = False

    def walk(level: dict[str, Any], prefix: str) -> None:
        nonlocal truncated
        # directories first, then files, each by name
        names = sorted(level, key=lambda n: (not level[n], n))
        for index, name in enumerate(names):
            if max_lines is not None and len(lines) >= max_lines:
                truncated = True
                return
            last = index == len(names) - 1
            children = level[name]
            lines.append(f"{prefix}{LAST_BRANCH if last else BRANCH}{name}{'/' if children else ''}")
            if children:
                walk(children, prefix + (SPACE if last else PIPE))

    walk(_build_trie(paths), "")
    if truncated:
        lines.append(TRUNCATED)
    return "\n".join(lines)


def render_tree(
    files: Sequence[ContentNode],
    config: DigestConfig,
    nodes: Sequence[ContentNode] | None = None,
) -> str:
    """Render the tree block requested by ``config.include_tree``.

    ``full`` renders the traversal forest when one is given, otherwise the
    selection; ``minimal`` renders the selection only, truncated.
    """
    if config.include_tree == "none":
        return ""
    if config.include_tree == "minimal":
        return render_path_tree((f.rel_path for f in files), config.max_selected_tree_lines)
    if nodes:
        return render_node_tree(nodes)
    return render_path_tree(f.rel_path for f in files)


# =============================================================================
# Summary
# =============================================================================


def build_summary(
    *,
    config: DigestConfig,
    files: Sequence[ContentNode],
    token_estimate: str,
    output_format: str,
    generated_at: datetime,
    stats: TraversalStats | None = None,
    warnings: Sequence[str] = (),
) -> str:
    """Build the human-readable summary block.

    Args:
        config: Configuration snapshot.
        files: Selected file nodes.
        token_estimate: Formatted token estimate.
        output_format: Name of the output format.
        generated_at: Generation timestamp.
        stats: Traversal statistics, when the selection came from a scan.
        warnings: Warnings to list.

    Returns:
        The summary text (markdown headings are used for every format).
    """
    total_size = sum(f.size for f in files)
    lines = [
        "# Digest Summary",
        "",
        f"- Files: {len(files)}",
        f"- Total Size: {human_size(total_size)}",
        f"- Tokens: {token_estimate}",
        f"- Format: {output_format}",
        f"- Generated: {generated_at.isoformat(timespec='seconds')}",
        (
            f"- Limits: max file {human_size(config.max_file_size)}, "
            f"max files {config.max_files}, "
            f"max total {human_size(config.max_total_size_bytes)}, "
            f"max depth {config.max_directory_depth}, "
            f"token limit {config.token_limit or 'none'}"
        ),
    ]
    if config.include_patterns:
        lines.append(f"- Include: {', '.join(config.include_patterns)}")
    if config.exclude_patterns:
        lines.append(f"- Exclude: {', '.join(config.exclude_patterns)}")
    if config.filter_presets:
        lines.append(f"- Presets: {', '.join(config.filter_presets)}")
    if stats is not None:
        skipped = (
            stats.skipped_by_size
            + stats.skipped_by_total_limit
            + stats.skipped_by_max_files
            + stats.skipped_by_depth
            + stats.skipped_by_ignore
        )
        lines.append(f"- Scanned: {stats.total_files} files in {stats.directories} directories, {skipped} skipped")
    if warnings:
        lines.extend(["", "## Warnings", ""])
        lines.extend(f"- {w}" for w in warnings)
    return "\n".join(lines) + "\n"


def build_error_section(errors: Sequence[tuple[str, str]], *, markdown: bool) -> str:
    """Render per-file errors as one collapsed section.

    Args:
        errors: ``(path, message)`` pairs, already deduplicated.
        markdown: Use an HTML ``<details>`` block.

    Returns:
        The section text, or '' when there are no errors.
    """
    if not errors:
        return ""
    items = "\n".join(f"- {path}: {message}" for path, message in errors)
    if markdown:
        return f"\n<details>\n<summary>Errors ({len(errors)})</summary>\n\n{items}\n\n</details>\n"
    return f"\nErrors ({len(errors)}):\n{items}\n"
