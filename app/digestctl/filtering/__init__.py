"""Ignore-file matching and include/exclude pattern filtering."""

from digestctl.filtering.ignore import CompiledPattern, IgnoreMatcher
from digestctl.filtering.patterns import MergedPatterns, PatternFilterService, PatternSet

__all__ = [
    "CompiledPattern",
    "IgnoreMatcher",
    "MergedPatterns",
    "PatternFilterService",
    "PatternSet",
]
