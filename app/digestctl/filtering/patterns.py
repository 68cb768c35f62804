"""Include/exclude pattern merging and per-entry filter decisions.

Decision policy:

- Files, include patterns configured: kept when an include pattern matches,
  no negated include (``!pattern`` in the include list) matches, and the
  ignore engine does not ignore the file. A matching include wins over a
  matching exclude.
- Files, no include patterns: kept unless an exclude pattern matches or the
  ignore engine ignores the file.
- Directories: pruned only when an exclude pattern matches them. A pruned
  directory hides everything below it, so an exclude such as
  ``src/exclude/**`` drops ``src/exclude/b.js`` even under ``src/**``.

Exclude entries starting with ``!`` are exceptions: a path matching one of
them is never excluded.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from pathspec import GitIgnoreSpec, PathSpec

from digestctl.core.config import DigestConfig
from digestctl.filtering.presets import EMPTY_PRESET, FILTER_PRESETS, PresetPatterns, preset_key

logger = logging.getLogger(__name__)

_GLOB_CHARS = ("*", "?", "[")


@dataclass(frozen=True, slots=True)
class MergedPatterns:
    """Effective include and exclude globs.

    Attributes:
        include: Include globs in first-seen order.
        exclude: Exclude globs; ``!`` entries are exclusion exceptions.
        negations: Patterns protected from overlap removal.
        include_negations: Bodies of ``!`` entries from the include list.
    """

    include: tuple[str, ...]
    exclude: tuple[str, ...]
    negations: tuple[str, ...] = ()
    include_negations: tuple[str, ...] = ()


def _normalize_patterns(patterns: Iterable[str]) -> list[str]:
    """Normalize separators, trim whitespace and drop duplicates and blanks."""
    cleaned = (p.replace("\\", "/").strip() for p in patterns)
    return list(dict.fromkeys(p for p in cleaned if p and p != "!"))


def _compile(patterns: Sequence[str]) -> PathSpec | None:
    if not patterns:
        return None
    return GitIgnoreSpec.from_lines(patterns)


def _literal_prefix(pattern: str) -> str | None:
    """Return the glob-free leading directory of a pattern.

    Returns None for patterns that can match at any depth.
    """
    body = pattern.strip("/")
    if "/" not in body:
        return None
    segments: list[str] = []
    for segment in body.split("/")[:-1]:
        if any(char in segment for char in _GLOB_CHARS):
            break
        segments.append(segment)
    return "/".join(segments)


class PatternSet:
    """Compiled include/exclude globs applied to one traversal.

    Paths are POSIX paths relative to the scan root.

    Args:
        include: Include globs.
        exclude: Exclude globs, ``!`` entries being exceptions.
        include_negations: Globs that veto a matching include.
    """

    def __init__(
        self,
        include: Sequence[str] = (),
        exclude: Sequence[str] = (),
        include_negations: Sequence[str] = (),
    ) -> None:
        self.include = tuple(include)
        self.include_negations = tuple(include_negations)
        self.exclude = tuple(p for p in exclude if not p.startswith("!"))
        self.exceptions = tuple(p[1:] for p in exclude if p.startswith("!") and len(p) > 1)
        self._include_spec = _compile(self.include)
        self._exclude_spec = _compile(self.exclude)
        self._exception_spec = _compile(self.exceptions)
        self._include_negation_spec = _compile(self.include_negations)

    @property
    def has_includes(self) -> bool:
        """True if any include pattern is configured."""
        return bool(self.include)

    @staticmethod
    def _match(spec: PathSpec | None, rel_path: str, is_directory: bool) -> bool:
        if spec is None:
            return False
        return spec.match_file(f"{rel_path}/" if is_directory else rel_path)

    def matches_include(self, rel_path: str, is_directory: bool = False) -> bool:
        """True if an include pattern matches the path."""
        return self._match(self._include_spec, rel_path, is_directory)

    def matches_exclude(self, rel_path: str, is_directory: bool = False) -> bool:
        """True if an exclude pattern matches and no exception rescues the path."""
        if not self._match(self._exclude_spec, rel_path, is_directory):
            return False
        return not self._match(self._exception_spec, rel_path, is_directory)

    def keep_file(self, rel_path: str, ignored: bool = False) -> bool:
        """Apply the file decision policy.

        Args:
            rel_path: Path relative to the scan root.
            ignored: Ignore-engine verdict for the file.

        Returns:
            True if the file should be part of the traversal result.
        """
        if ignored:
            return False
        if self.has_includes:
            if self._match(self._include_negation_spec, rel_path, False):
                return False
            return self.matches_include(rel_path)
        return not self.matches_exclude(rel_path)

    def exclude_directory(self, rel_path: str) -> bool:
        """True if an exclude pattern prunes the directory."""
        return self.matches_exclude(rel_path, is_directory=True)

    def may_target_inside(self, rel_dir: str) -> bool:
        """True if an include pattern is rooted at or below ``rel_dir``.

        Depth-independent patterns such as ``**/*.py`` do not count: they
        target no directory in particular.
        """
        for pattern in self.include:
            prefix = _literal_prefix(pattern)
            if not prefix:
                continue
            if prefix == rel_dir or prefix.startswith(f"{rel_dir}/") or rel_dir.startswith(f"{prefix}/"):
                return True
        return False


class PatternFilterService:
    """Resolves presets and merges them with user patterns."""

    def resolve_preset(self, name: str) -> PresetPatterns:
        """Look up a built-in preset.

        Args:
            name: Preset name such as "code-only".

        Returns:
            The preset patterns; empty for unknown names.
        """
        preset = FILTER_PRESETS.get(preset_key(name))
        if preset is None:
            logger.debug("Unknown filter preset %r, using no patterns", name)
            return EMPTY_PRESET
        return preset

    def resolve_presets(self, names: Iterable[str]) -> PresetPatterns:
        """Combine several presets in order."""
        combined = EMPTY_PRESET
        for name in names:
            combined = combined + self.resolve_preset(name)
        return combined

    def merge_patterns(
        self,
        user_include: Iterable[str],
        user_exclude: Iterable[str],
        preset: PresetPatterns | None = None,
        explicit_negations: Iterable[str] = (),
    ) -> MergedPatterns:
        """Union preset and user patterns into one effective set.

        ``!pattern`` entries in the include list become exclude patterns and
        are kept as include negations that veto a matching include;
        ``!pattern`` entries in the exclude list stay as standalone
        exceptions. A pattern listed in both include and exclude is dropped
        from exclude unless it is an explicit negation.

        Args:
            user_include: User include globs.
            user_exclude: User exclude globs.
            preset: Preset patterns to merge in.
            explicit_negations: Patterns that must survive overlap removal.

        Returns:
            The merged patterns.
        """
        preset = preset or EMPTY_PRESET
        include = _normalize_patterns([*preset.include, *user_include])
        exclude = _normalize_patterns([*preset.exclude, *user_exclude])

        negated_includes = [p[1:] for p in include if p.startswith("!")]
        include = [p for p in include if not p.startswith("!")]
        exclude = _normalize_patterns([*exclude, *negated_includes])

        protected = set(_normalize_patterns(explicit_negations)) | set(negated_includes)
        include_set = set(include)
        exclude = [p for p in exclude if p not in include_set or p in protected]

        return MergedPatterns(
            include=tuple(include),
            exclude=tuple(exclude),
            negations=tuple(sorted(protected)),
            include_negations=tuple(negated_includes),
        )

    def build_pattern_set(
        self,
        config: DigestConfig,
        explicit_negations: Iterable[str] = (),
    ) -> PatternSet:
        """Build the pattern set for a configuration snapshot."""
        merged = self.merge_patterns(
            config.include_patterns,
            config.exclude_patterns,
            self.resolve_presets(config.filter_presets),
            explicit_negations,
        )
        return PatternSet(merged.include, merged.exclude, merged.include_negations)
