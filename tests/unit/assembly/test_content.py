"""Unit tests for file content reading."""

import os
from pathlib import Path

import pytest
from digestctl.assembly.content import ContentReader, is_binary_sample, render_binary
from digestctl.core.config import DigestConfig
from digestctl.core.errors import FileReadError
from digestctl.traversal import ContentNode, NodeKind


def _file_node(path: Path, kind: NodeKind = NodeKind.FILE) -> ContentNode:
    return ContentNode(path=str(path), rel_path=path.name, name=path.name, kind=kind)


class TestBinaryDetection:
    """Tests for is_binary_sample."""

    @pytest.mark.parametrize(
        ("sample", "expected"),
        [
            (b"", False),
            (b"plain ascii\n", False),
            ("héllo wörld".encode(), False),
            (b"abc\x00def", True),
            (bytes(range(0x80, 0xC0)), True),
            (b"mostly text with one \xff byte", False),
        ],
    )
    def test_classification(self, sample: bytes, expected: bool) -> None:
        assert is_binary_sample(sample) is expected

    def test_truncated_multibyte_is_text(self) -> None:
        """A UTF-8 sequence cut at the sample boundary is still text."""
        sample = "ab€".encode()[:-1]
        assert is_binary_sample(sample) is False


class TestRenderBinary:
    """Tests for binary policies."""

    def test_skip(self) -> None:
        content = render_binary(b"\x00\x01", "skip")
        assert content.text == "[binary file skipped: 2 B]"
        assert content.encoding == "none"

    def test_placeholder(self) -> None:
        assert render_binary(b"\x00" * 2048, "placeholder").text == "[binary file: 2.0 KB]"

    def test_base64(self) -> None:
        content = render_binary(b"\x00\x01\x02", "base64")
        assert content.text == "AAEC"
        assert content.is_binary
        assert content.encoding == "base64"


class TestContentReader:
    """Tests for ContentReader."""

    def test_reads_text_and_normalizes_newlines(self, tmp_path: Path) -> None:
        """CRLF line endings become LF."""
        path = tmp_path / "a.txt"
        path.write_bytes(b"one\r\ntwo\r\n")
        content = ContentReader().read(_file_node(path), DigestConfig())
        assert content.text == "one\ntwo\n"
        assert not content.is_binary

    def test_binary_uses_policy(self, tmp_path: Path) -> None:
        path = tmp_path / "a.bin"
        path.write_bytes(b"\x00\x01\x02")
        content = ContentReader().read(_file_node(path), DigestConfig(binary_file_policy="base64"))
        assert content.text == "AAEC"

    def test_symlink_shows_target(self, tmp_path: Path) -> None:
        """Symlinks are rendered as a pointer, not followed."""
        (tmp_path / "target.txt").write_text("secret")
        link = tmp_path / "link.txt"
        os.symlink("target.txt", link)
        content = ContentReader().read(_file_node(link, NodeKind.SYMLINK), DigestConfig())
        assert content.text == "[symlink -> target.txt]"

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        """Read failures raise FileReadError with the relative path."""
        with pytest.raises(FileReadError) as exc_info:
            ContentReader().read(_file_node(tmp_path / "missing.txt"), DigestConfig())
        assert exc_info.value.path == "missing.txt"
