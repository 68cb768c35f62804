"""Hierarchical ignore-file matching.

Every directory may carry its own ignore files. Their lines are compiled
into ``CompiledPattern`` records keyed by the declaring directory. A path is
evaluated against the patterns of every ancestor directory, shallowest
first, and the last matching pattern decides: a negation (``!pattern``)
undoes any earlier match.

Example:
    >>> matcher = IgnoreMatcher("/repo")
    >>> matcher.add_patterns("/repo", ["*.tmp", "!keep.tmp"])
    2
    >>> matcher.is_ignored("keep.tmp")
    False
"""

import logging
import os
import posixpath
from collections.abc import Iterable
from dataclasses import dataclass, field

from pathspec import GitIgnoreSpec, PathSpec

logger = logging.getLogger(__name__)

DEFAULT_IGNORE_FILES: tuple[str, ...] = (".gitignore", ".gitingestignore")

_GLOB_CHARS = ("*", "?", "[")


def _normalize(path: str) -> str:
    return os.path.normpath(os.path.abspath(path))


def _relative_to(candidate: str, directory: str) -> str | None:
    """Return ``candidate`` relative to ``directory`` in POSIX form.

    Returns None when ``candidate`` is not strictly below ``directory``.
    """
    prefix = directory if directory.endswith(os.sep) else directory + os.sep
    if not candidate.startswith(prefix):
        return None
    return candidate[len(prefix) :].replace(os.sep, "/")


@dataclass(frozen=True, slots=True)
class CompiledPattern:
    """One ignore-file line turned into a matcher.

    Attributes:
        raw: The line as written in the ignore file.
        is_negation: True for ``!pattern`` lines.
        cleaned: Pattern body without negation, anchoring or trailing slash.
        anchored: True when the pattern starts with ``/``.
        directory_only: True when the pattern ends with ``/``.
        base_dir: Normalized absolute directory that declared the pattern.
    """

    raw: str
    is_negation: bool
    cleaned: str
    anchored: bool
    directory_only: bool
    base_dir: str
    _spec: PathSpec = field(repr=False, compare=False)

    @property
    def is_literal(self) -> bool:
        """True when the pattern body contains no glob characters."""
        return not any(char in self.cleaned for char in _GLOB_CHARS)

    def matches(self, candidate: str, is_directory: bool) -> bool:
        """Test a normalized absolute path against this pattern.

        Args:
            candidate: Normalized absolute path.
            is_directory: Whether the candidate is a directory.

        Returns:
            True if the pattern matches the candidate.
        """
        relative = _relative_to(candidate, self.base_dir)
        if not relative:
            return False
        # gitignore matching marks directories with a trailing slash
        test_path = f"{relative}/" if is_directory else relative
        return self._spec.match_file(test_path)


def compile_pattern(line: str, base_dir: str) -> CompiledPattern | None:
    """Compile a single ignore-file line.

    Args:
        line: Raw line from an ignore file.
        base_dir: Directory that declared the line.

    Returns:
        The compiled pattern, or None for blank lines, comments and
        patterns that cannot be compiled.
    """
    text = line.strip()
    if not text or text.startswith("#"):
        return None

    is_negation = text.startswith("!")
    body = text[1:] if is_negation else text
    while "//" in body:
        body = body.replace("//", "/")

    cleaned = body.strip("/")
    if cleaned.startswith(("\\#", "\\!")):
        cleaned = cleaned[1:]
    if not cleaned:
        return None

    try:
        spec = GitIgnoreSpec.from_lines([body])
    except ValueError as e:
        logger.debug("Skipping invalid ignore pattern %r in %s: %s", line, base_dir, e)
        return None

    return CompiledPattern(
        raw=text,
        is_negation=is_negation,
        cleaned=cleaned,
        anchored=body.startswith("/"),
        directory_only=body.endswith("/"),
        base_dir=_normalize(base_dir),
        _spec=spec,
    )


def _read_ignore_lines(path: str) -> list[str]:
    """Read an ignore file, treating any failure as an empty file."""
    try:
        with open(path, encoding="utf-8") as f:
            return f.read().splitlines()
    except FileNotFoundError:
        return []
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Ignoring unreadable ignore file %s: %s", path, e)
        return []


class IgnoreMatcher:
    """Directory-scoped, last-rule-wins ignore matcher.

    One matcher belongs to one traversal invocation; its cache is never
    shared between runs.

    Args:
        root: Directory that relative candidate paths are resolved against.
        ignore_files: File names read from every loaded directory.
    """

    def __init__(self, root: str | os.PathLike[str], *, ignore_files: Iterable[str] = DEFAULT_IGNORE_FILES) -> None:
        self._root = _normalize(os.fspath(root))
        self._ignore_files = tuple(ignore_files)
        self._patterns: dict[str, list[CompiledPattern]] = {}
        self._loaded: set[str] = set()
        self._ordered_dirs: list[str] | None = None

    @property
    def root(self) -> str:
        """Normalized absolute root directory."""
        return self._root

    def load_for_directory(self, directory: str | os.PathLike[str]) -> None:
        """Read the ignore files of a directory once.

        Repeated calls for the same directory are no-ops. Missing, unreadable
        or undecodable ignore files contribute no patterns.

        Args:
            directory: Directory whose ignore files should be loaded.
        """
        key = _normalize(os.fspath(directory))
        if key in self._loaded:
            return
        self._loaded.add(key)

        lines: list[str] = []
        for name in self._ignore_files:
            lines.extend(_read_ignore_lines(os.path.join(key, name)))
        if lines:
            self.add_patterns(key, lines)

    def add_patterns(self, directory: str | os.PathLike[str], lines: Iterable[str]) -> int:
        """Compile and register pattern lines for a directory.

        Args:
            directory: Directory the patterns are declared in.
            lines: Raw ignore-file lines.

        Returns:
            Number of patterns that were compiled.
        """
        key = _normalize(os.fspath(directory))
        compiled = [p for p in (compile_pattern(line, key) for line in lines) if p is not None]
        if compiled:
            self._patterns.setdefault(key, []).extend(compiled)
            self._ordered_dirs = None
        return len(compiled)

    def patterns_for(self, directory: str | os.PathLike[str]) -> tuple[CompiledPattern, ...]:
        """Return the patterns declared by a directory."""
        return tuple(self._patterns.get(_normalize(os.fspath(directory)), ()))

    def is_ignored(self, path: str | os.PathLike[str], is_directory: bool = False) -> bool:
        """Evaluate the last-rule-wins verdict for a path.

        Args:
            path: Absolute path, or path relative to the matcher root. A
                trailing slash marks the path as a directory.
            is_directory: Whether the path is a directory.

        Returns:
            True if the last matching pattern ignores the path.
        """
        text = os.fspath(path)
        if len(text) > 1 and text.endswith(("/", os.sep)):
            is_directory = True
            text = text.rstrip("/" + os.sep)
        if not os.path.isabs(text):
            text = os.path.join(self._root, text)
        candidate = _normalize(text)

        ignored = False
        for directory in self._directories():
            if _relative_to(candidate, directory) is None:
                continue
            for pattern in self._patterns[directory]:
                if pattern.matches(candidate, is_directory):
                    ignored = not pattern.is_negation
        return ignored

    def may_unignore_inside(self, directory: str | os.PathLike[str]) -> bool:
        """True if a negation could re-include something below ``directory``.

        Glob and basename negations are assumed to reach anywhere; other
        literal negations only count when their target lies below the
        directory.
        """
        candidate = _normalize(os.fspath(directory))
        for patterns in self._patterns.values():
            for pattern in patterns:
                if not pattern.is_negation:
                    continue
                if not pattern.is_literal or ("/" not in pattern.cleaned and not pattern.anchored):
                    return True
                target = _normalize(os.path.join(pattern.base_dir, *pattern.cleaned.split("/")))
                if _relative_to(target, candidate):
                    return True
        return False

    def list_explicit_negations(self) -> list[str]:
        """Return literal negation targets relative to the matcher root.

        Glob negations are left out since they do not name a single path.
        Negations declared outside of the root are skipped.

        Returns:
            Deduplicated POSIX paths in declaration order.
        """
        found: dict[str, None] = {}
        for directory in self._directories():
            if directory == self._root:
                prefix = ""
            else:
                prefix = _relative_to(directory, self._root)
                if prefix is None:
                    continue
            for pattern in self._patterns[directory]:
                if pattern.is_negation and pattern.is_literal:
                    found.setdefault(posixpath.join(prefix, pattern.cleaned) if prefix else pattern.cleaned)
        return list(found)

    def clear(self) -> None:
        """Drop all cached patterns."""
        self._patterns.clear()
        self._loaded.clear()
        self._ordered_dirs = None

    def _directories(self) -> list[str]:
        """Declaring directories ordered shallowest first."""
        if self._ordered_dirs is None:
            self._ordered_dirs = sorted(self._patterns, key=lambda d: (d.count(os.sep), d))
        return self._ordered_dirs
