"""Data models for directory traversal.

``ContentNode`` trees are built once per traversal and handed to the digest
pipeline; nothing here is persisted.
"""

import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class NodeKind(str, Enum):
    """Type of filesystem entry."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


@dataclass(slots=True)
class ContentNode:
    """One filesystem entry found during a traversal.

    Attributes:
        path: Absolute path.
        rel_path: POSIX path relative to the original scan root.
        name: Display name (basename).
        kind: File, directory or symlink.
        size: Size in bytes (0 for directories).
        mtime: Modification time.
        depth: Depth below the scan root (root children have depth 0).
        selected: Whether the node is part of the digest selection.
        children: Owned child nodes (directories only).
    """

    path: str
    rel_path: str
    name: str
    kind: NodeKind
    size: int = 0
    mtime: datetime | None = None
    depth: int = 0
    selected: bool = False
    children: list["ContentNode"] | None = None

    def __post_init__(self) -> None:
        """Validate fields after initialization."""
        if "\\" in self.rel_path:
            msg = f"rel_path must use POSIX separators: {self.rel_path}"
            raise ValueError(msg)
        if self.kind == NodeKind.DIRECTORY and self.children is None:
            self.children = []

    @property
    def is_directory(self) -> bool:
        return self.kind == NodeKind.DIRECTORY

    @property
    def is_symlink(self) -> bool:
        return self.kind == NodeKind.SYMLINK

    @property
    def extension(self) -> str:
        """Lower-cased file extension including the dot, or ''."""
        return os.path.splitext(self.name)[1].lower()

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        data: dict[str, Any] = {
            "path": self.path,
            "rel_path": self.rel_path,
            "name": self.name,
            "kind": self.kind.value,
            "size": self.size,
            "mtime": self.mtime.isoformat() if self.mtime else None,
            "depth": self.depth,
        }
        if self.children is not None:
            data["children"] = [child.to_dict() for child in self.children]
        return data


def iter_nodes(nodes: Iterable[ContentNode]) -> Iterator[ContentNode]:
    """Yield every node of a forest depth-first, parents before children."""
    for node in nodes:
        yield node
        if node.children:
            yield from iter_nodes(node.children)


def iter_files(nodes: Iterable[ContentNode]) -> Iterator[ContentNode]:
    """Yield file and symlink nodes of a forest depth-first."""
    return (node for node in iter_nodes(nodes) if not node.is_directory)


def sort_nodes(nodes: list[ContentNode]) -> None:
    """Order sibling nodes in place: directories first, then by name."""
    nodes.sort(key=lambda n: (not n.is_directory, n.name))


@dataclass(frozen=True, slots=True)
class TraversalStats:
    """Frozen counters and warnings of one traversal.

    Warnings are deduplicated by their key, the text before the first ``:``.
    """

    total_files: int = 0
    total_size: int = 0
    skipped_by_size: int = 0
    skipped_by_total_limit: int = 0
    skipped_by_max_files: int = 0
    skipped_by_depth: int = 0
    skipped_by_ignore: int = 0
    directories: int = 0
    symlinks: int = 0
    warnings: tuple[str, ...] = ()
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "total_files": self.total_files,
            "total_size": self.total_size,
            "skipped_by_size": self.skipped_by_size,
            "skipped_by_total_limit": self.skipped_by_total_limit,
            "skipped_by_max_files": self.skipped_by_max_files,
            "skipped_by_depth": self.skipped_by_depth,
            "skipped_by_ignore": self.skipped_by_ignore,
            "directories": self.directories,
            "symlinks": self.symlinks,
            "warnings": list(self.warnings),
            "duration_ms": self.duration_ms,
        }


def warning_key(message: str) -> str:
    """Stable deduplication key of a warning."""
    return message.split(":", 1)[0]


def dedupe_warnings(warnings: Iterable[str]) -> list[str]:
    """Keep the first warning of every key, in order."""
    seen: dict[str, str] = {}
    for message in warnings:
        seen.setdefault(warning_key(message), message)
    return list(seen.values())


@dataclass(slots=True)
class StatsAccumulator:
    """Mutable counters filled in by a running traversal."""

    total_files: int = 0
    total_size: int = 0
    skipped_by_size: int = 0
    skipped_by_total_limit: int = 0
    skipped_by_max_files: int = 0
    skipped_by_depth: int = 0
    skipped_by_ignore: int = 0
    directories: int = 0
    symlinks: int = 0
    warnings: list[str] = field(default_factory=list)
    _warning_keys: set[str] = field(default_factory=set, repr=False)

    def warn(self, message: str) -> None:
        """Record a warning unless one with the same key exists."""
        key = warning_key(message)
        if key in self._warning_keys:
            return
        self._warning_keys.add(key)
        self.warnings.append(message)

    def freeze(self, duration_ms: int = 0) -> TraversalStats:
        """Return the frozen statistics."""
        return TraversalStats(
            total_files=self.total_files,
            total_size=self.total_size,
            skipped_by_size=self.skipped_by_size,
            skipped_by_total_limit=self.skipped_by_total_limit,
            skipped_by_max_files=self.skipped_by_max_files,
            skipped_by_depth=self.skipped_by_depth,
            skipped_by_ignore=self.skipped_by_ignore,
            directories=self.directories,
            symlinks=self.symlinks,
            warnings=tuple(dedupe_warnings(self.warnings)),
            duration_ms=duration_ms,
        )


@dataclass(frozen=True, slots=True)
class TraversalResult:
    """Node forest and statistics returned by a traversal."""

    nodes: list[ContentNode]
    stats: TraversalStats

    def files(self) -> list[ContentNode]:
        """Flat list of file and symlink nodes."""
        return list(iter_files(self.nodes))


@dataclass(frozen=True, slots=True)
class ShallowPage:
    """One page of a single-level directory listing.

    Attributes:
        items: Nodes of this page; directories have no children loaded.
        total: Number of eligible entries in the directory.
        offset: Index of the first item.
    """

    items: list[ContentNode]
    total: int
    offset: int = 0

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total
