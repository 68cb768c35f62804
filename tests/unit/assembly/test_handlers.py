"""Unit tests for content handler and tokenizer registries."""

from collections.abc import Callable
from pathlib import Path

from digestctl.assembly.handlers import (
    ContentHandler,
    ContentHandlerRegistry,
    HandlerOutput,
    TokenizerRegistry,
    extension_handler,
)
from digestctl.assembly.pipeline import AssemblyPipeline
from digestctl.core.config import DigestConfig
from digestctl.traversal import ContentNode, NodeKind, TraversalEngine


def _node(name: str) -> ContentNode:
    return ContentNode(path=f"/r/{name}", rel_path=name, name=name, kind=NodeKind.FILE)


def _constant(text: HandlerOutput) -> Callable[[ContentNode, DigestConfig], HandlerOutput]:
    return lambda node, config: text


class TestContentHandlerRegistry:
    """Tests for handler resolution."""

    def test_first_match_wins(self) -> None:
        first = ContentHandler("first", lambda node: True, _constant("1"))
        second = ContentHandler("second", lambda node: True, _constant("2"))
        registry = ContentHandlerRegistry([first])
        registry.register(second)

        assert registry.resolve(_node("a.txt")) is first
        assert registry.handlers == (first, second)

    def test_no_match(self) -> None:
        registry = ContentHandlerRegistry([extension_handler("csv", ["csv"], _constant("table"))])
        assert registry.resolve(_node("a.txt")) is None

    def test_raising_predicate_skipped(self) -> None:
        """A predicate that raises counts as no match."""

        def broken(node: ContentNode) -> bool:
            raise RuntimeError("bad predicate")

        fallback = ContentHandler("fallback", lambda node: True, _constant("ok"))
        registry = ContentHandlerRegistry([ContentHandler("broken", broken, _constant("x")), fallback])

        assert registry.resolve(_node("a.txt")) is fallback

    def test_extension_handler_normalizes(self) -> None:
        """Extensions match with or without the dot, case-insensitively."""
        handler = extension_handler("csv", ["CSV", ".tsv"], _constant("table"))
        assert handler.predicate(_node("data.csv"))
        assert handler.predicate(_node("DATA.TSV"))
        assert not handler.predicate(_node("data.txt"))


class TestTokenizerRegistry:
    def test_register_and_get(self) -> None:
        registry = TokenizerRegistry()
        registry.register("words", lambda text, config: len(text.split()))
        tokenizer = registry.get("words")

        assert tokenizer is not None
        assert tokenizer("a b c", DigestConfig()) == 3
        assert registry.get("missing") is None
        assert registry.names == ["words"]


class TestHandlersInPipeline:
    """Tests for handlers applied during generation."""

    def test_registered_handler_replaces_body(self, tmp_path: Path) -> None:
        (tmp_path / "data.csv").write_text("a,b\n1,2\n")
        (tmp_path / "notes.txt").write_text("plain\n")
        config = DigestConfig(exclude_patterns=())
        files = TraversalEngine().scan_root(tmp_path, config).files()
        registry = ContentHandlerRegistry([extension_handler("csv", [".csv"], _constant("| a | b |"))])

        digest = AssemblyPipeline(handlers=registry).generate(files, config, (), "text")

        assert [o.body for o in digest.output_objects] == ["| a | b |", "plain\n"]

    def test_plugins_take_precedence(self, tmp_path: Path) -> None:
        """Per-call format plugins are consulted before registered handlers."""
        (tmp_path / "data.csv").write_text("a,b\n")
        config = DigestConfig(exclude_patterns=())
        files = TraversalEngine().scan_root(tmp_path, config).files()
        registry = ContentHandlerRegistry([extension_handler("csv", [".csv"], _constant("registry"))])
        plugin = extension_handler("csv-plugin", [".csv"], _constant("plugin"))

        digest = AssemblyPipeline(handlers=registry).generate(files, config, [plugin], "text")

        assert digest.output_objects[0].body == "plugin"

    def test_bytes_output_is_binary(self, tmp_path: Path) -> None:
        """Handlers returning bytes go through the binary policy."""
        (tmp_path / "image.png").write_text("stub")
        config = DigestConfig(exclude_patterns=(), binary_file_policy="placeholder")
        files = TraversalEngine().scan_root(tmp_path, config).files()
        plugin = extension_handler("png", [".png"], _constant(b"\x89PNG"))

        digest = AssemblyPipeline().generate(files, config, [plugin], "text")

        assert digest.output_objects[0].body == "[binary file: 4 B]"
