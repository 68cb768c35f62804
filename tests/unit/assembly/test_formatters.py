"""Unit tests for output formatters."""

import json
from datetime import datetime

import pytest
from digestctl.assembly.content import FileContent
from digestctl.assembly.formatters import (
    JsonFormatter,
    MarkdownFormatter,
    TextFormatter,
    get_formatter,
    infer_language,
    render_header,
)
from digestctl.assembly.models import OutputObject
from digestctl.core.config import DigestConfig
from digestctl.traversal import ContentNode, NodeKind


def _node(rel_path: str, kind: NodeKind = NodeKind.FILE, size: int = 2048) -> ContentNode:
    return ContentNode(
        path=f"/repo/{rel_path}",
        rel_path=rel_path,
        name=rel_path.rsplit("/", 1)[-1],
        kind=kind,
        size=size,
        mtime=datetime(2024, 5, 1, 12, 30, 0),
    )


class TestHeaders:
    """Tests for header rendering."""

    def test_default_template(self) -> None:
        """All template tokens are replaced."""
        header = render_header(_node("src/app.py"), DigestConfig().output_header_template)
        assert header == "==== src/app.py (2.0 KB, 2024-05-01T12:30:00) ====\n"

    def test_symlink_marker(self) -> None:
        """Symlinks are marked in the header."""
        header = render_header(_node("link", NodeKind.SYMLINK), "<relPath>")
        assert header == "link [symlink]\n"

    def test_unknown_mtime(self) -> None:
        """Missing timestamps render as unknown."""
        node = ContentNode(path="/r/a", rel_path="a", name="a", kind=NodeKind.FILE)
        assert render_header(node, "<relPath> <modified>\n") == "a unknown\n"

    def test_json_header_is_rel_path(self) -> None:
        """JSON file headers are the bare relative path."""
        assert JsonFormatter().build_header(_node("src/app.py"), DigestConfig()) == "src/app.py"


class TestMarkdownFormatter:
    """Tests for markdown bodies."""

    @pytest.fixture
    def formatter(self) -> MarkdownFormatter:
        return MarkdownFormatter()

    def test_fenced_with_language(self, formatter: MarkdownFormatter) -> None:
        """Code is fenced with the inferred language."""
        body = formatter.build_body(FileContent("x = 1"), _node("a.py"), DigestConfig())
        assert body == "```python\nx = 1\n```"

    def test_unknown_extension(self, formatter: MarkdownFormatter) -> None:
        """Unknown extensions get a bare fence."""
        body = formatter.build_body(FileContent("data\n"), _node("a.xyz"), DigestConfig())
        assert body == "```\ndata\n```"

    def test_markdown_not_fenced(self, formatter: MarkdownFormatter) -> None:
        """Markdown files are embedded as-is."""
        body = formatter.build_body(FileContent("# Title\n"), _node("README.md"), DigestConfig())
        assert body == "# Title\n"

    def test_existing_fence_not_nested(self, formatter: MarkdownFormatter) -> None:
        """Content already containing a fence is embedded as-is."""
        text = "```\ncode\n```\n"
        assert formatter.build_body(FileContent(text), _node("notes.txt"), DigestConfig()) == text

    def test_base64(self, formatter: MarkdownFormatter) -> None:
        """Base64 payloads get a base64 fence."""
        body = formatter.build_body(FileContent("AAEC", True, "base64"), _node("a.bin"), DigestConfig())
        assert body == "```base64\nAAEC\n```"

    def test_marker_not_fenced(self, formatter: MarkdownFormatter) -> None:
        """Binary markers are plain text."""
        content = FileContent("[binary file skipped: 3 B]", True, "none")
        assert formatter.build_body(content, _node("a.bin"), DigestConfig()) == "[binary file skipped: 3 B]"

    def test_leading_block(self, formatter: MarkdownFormatter) -> None:
        """Summary precedes the tree block."""
        leading = formatter.render_leading("# Digest Summary\n", "└── a.py")
        assert leading == "# Digest Summary\n\n## Directory Tree\n\n```text\n└── a.py\n```\n"


class TestTextFormatter:
    """Tests for plain text output."""

    def test_chunks_joined_with_separator(self) -> None:
        """Chunks are joined by the configured separator."""
        formatter = TextFormatter()
        config = DigestConfig(output_separator="\n~~\n")
        items = [OutputObject("h1\n", "b1"), OutputObject("h2\n", "b2")]
        chunks = [formatter.render_chunk(item) for item in items]
        assert formatter.finalize(chunks, config) == "h1\nb1\n\n~~\nh2\nb2\n"

    def test_leading_without_summary(self) -> None:
        """The tree alone makes up the leading block."""
        assert TextFormatter().render_leading("", "└── a") == "Directory Tree:\n└── a\n"

    def test_empty_leading(self) -> None:
        assert TextFormatter().render_leading("", "") == ""


class TestJsonFormatter:
    """Tests for the JSON document."""

    def test_document_shape(self) -> None:
        """The document carries summary, tree, files and warnings."""
        content = JsonFormatter().render_document(
            summary="s",
            tree="t",
            files=[OutputObject("a.py", "x = 1", ("os",))],
            warnings=["w"],
        )
        assert json.loads(content) == {
            "summary": "s",
            "tree": "t",
            "files": [{"header": "a.py", "body": "x = 1", "imports": ["os"]}],
            "warnings": ["w"],
        }

    def test_metadata_included(self) -> None:
        content = JsonFormatter().render_document(summary="", tree="", files=[], warnings=[], metadata={"files": 0})
        assert json.loads(content)["metadata"] == {"files": 0}


class TestLookup:
    """Tests for formatter and language lookup."""

    def test_get_formatter_case_insensitive(self) -> None:
        assert get_formatter("JSON").name == "json"

    def test_get_formatter_unknown(self) -> None:
        """Unknown names raise ValueError."""
        with pytest.raises(ValueError, match="Unknown output format: html"):
            get_formatter("html")

    @pytest.mark.parametrize(
        ("extension", "language"),
        [(".py", "python"), (".TS", "typescript"), (".yml", "yaml"), (".nope", "")],
    )
    def test_infer_language(self, extension: str, language: str) -> None:
        assert infer_language(extension) == language
