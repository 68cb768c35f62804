"""Unit tests for traversal data models."""

import pytest
from digestctl.traversal.models import (
    ContentNode,
    NodeKind,
    ShallowPage,
    StatsAccumulator,
    dedupe_warnings,
    iter_files,
    sort_nodes,
    warning_key,
)


def _file(rel: str, size: int = 1) -> ContentNode:
    return ContentNode(path=f"/r/{rel}", rel_path=rel, name=rel.rsplit("/", 1)[-1], kind=NodeKind.FILE, size=size)


def _dir(rel: str, children: list[ContentNode] | None = None) -> ContentNode:
    return ContentNode(
        path=f"/r/{rel}",
        rel_path=rel,
        name=rel.rsplit("/", 1)[-1],
        kind=NodeKind.DIRECTORY,
        children=children,
    )


class TestContentNode:
    """Tests for ContentNode."""

    def test_rejects_backslashes(self) -> None:
        """Relative paths must use forward slashes."""
        with pytest.raises(ValueError, match="POSIX"):
            _file("src\\a.py")

    def test_directory_gets_children_list(self) -> None:
        """Directories always own a children list."""
        assert _dir("src").children == []
        assert _file("a.py").children is None

    def test_extension(self) -> None:
        """Extensions are lower-cased and include the dot."""
        assert _file("A.PY").extension == ".py"
        assert _file("Makefile").extension == ""

    def test_to_dict(self) -> None:
        """Serialization includes children for directories."""
        data = _dir("src", [_file("src/a.py", 3)]).to_dict()
        assert data["kind"] == "directory"
        assert data["children"][0]["rel_path"] == "src/a.py"
        assert data["children"][0]["size"] == 3


class TestTreeHelpers:
    """Tests for forest helpers."""

    def test_sort_nodes(self) -> None:
        """Directories sort before files, each by name."""
        nodes = [_file("b.py"), _dir("z"), _file("a.py"), _dir("m")]
        sort_nodes(nodes)
        assert [n.name for n in nodes] == ["m", "z", "a.py", "b.py"]

    def test_iter_files(self) -> None:
        """iter_files yields files depth-first."""
        forest = [_dir("src", [_file("src/a.py"), _dir("src/x", [_file("src/x/b.py")])]), _file("c.py")]
        assert [n.rel_path for n in iter_files(forest)] == ["src/a.py", "src/x/b.py", "c.py"]


class TestWarnings:
    """Tests for warning deduplication."""

    def test_warning_key(self) -> None:
        """The key is the text before the first colon."""
        assert warning_key("Failed to stat: a/b") == "Failed to stat"

    def test_dedupe_keeps_first(self) -> None:
        """Only the first warning of a key survives."""
        warnings = ["Failed to stat: a", "Failed to stat: b", "Max file count reached: 3"]
        assert dedupe_warnings(warnings) == ["Failed to stat: a", "Max file count reached: 3"]

    def test_accumulator_freeze(self) -> None:
        """Frozen stats carry counters and deduplicated warnings."""
        stats = StatsAccumulator(total_files=2, total_size=10)
        stats.warn("Failed to stat: a")
        stats.warn("Failed to stat: b")

        frozen = stats.freeze(duration_ms=5)

        assert frozen.total_files == 2
        assert frozen.warnings == ("Failed to stat: a",)
        assert frozen.to_dict()["duration_ms"] == 5


class TestShallowPage:
    """Tests for ShallowPage."""

    def test_has_more(self) -> None:
        """has_more reports whether entries remain after the page."""
        assert ShallowPage(items=[_file("a")], total=3, offset=0).has_more
        assert not ShallowPage(items=[_file("c")], total=3, offset=2).has_more
