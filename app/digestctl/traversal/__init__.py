"""Filtered directory traversal under resource quotas."""

from digestctl.traversal.engine import TraversalEngine
from digestctl.traversal.models import (
    ContentNode,
    NodeKind,
    ShallowPage,
    TraversalResult,
    TraversalStats,
)

__all__ = [
    "ContentNode",
    "NodeKind",
    "ShallowPage",
    "TraversalEngine",
    "TraversalResult",
    "TraversalStats",
]
