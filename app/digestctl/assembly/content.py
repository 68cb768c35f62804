"""File content reading with binary detection.

Binary files are never decoded; the configured policy decides whether they
appear as a short marker or as base64 text.
"""

import base64
import logging
import os
from dataclasses import dataclass

from digestctl.assembly.summary import human_size
from digestctl.core.config import BinaryPolicy, DigestConfig
from digestctl.core.errors import FileReadError
from digestctl.traversal.models import ContentNode

logger = logging.getLogger(__name__)

SNIFF_BYTES = 8192
NON_TEXT_RATIO = 0.30

_TEXT_BYTES = frozenset({7, 8, 9, 10, 12, 13, 27}) | frozenset(range(0x20, 0x7F))


@dataclass(frozen=True, slots=True)
class FileContent:
    """Content of one file, ready for formatting.

    Attributes:
        text: Decoded text, base64 payload or binary marker.
        is_binary: True if the file was detected as binary.
        encoding: "utf-8", "base64" or "none" for markers.
    """

    text: str
    is_binary: bool = False
    encoding: str = "utf-8"


def is_binary_sample(sample: bytes) -> bool:
    """Classify a leading chunk of a file as binary.

    A NUL byte means binary. Valid UTF-8 means text. Otherwise the sample is
    binary when more than 30% of its bytes are neither printable ASCII nor
    common control characters.
    """
    if not sample:
        return False
    if b"\x00" in sample:
        return True
    try:
        sample.decode("utf-8")
        return False
    except UnicodeDecodeError as e:
        # a multi-byte sequence cut off at the sniff boundary is still text
        if e.reason == "unexpected end of data":
            return False
    non_text = sum(1 for byte in sample if byte not in _TEXT_BYTES)
    return non_text / len(sample) > NON_TEXT_RATIO


def render_binary(data: bytes, policy: BinaryPolicy) -> FileContent:
    """Render binary data according to the binary file policy."""
    if policy == "base64":
        return FileContent(base64.b64encode(data).decode("ascii"), is_binary=True, encoding="base64")
    if policy == "placeholder":
        return FileContent(f"[binary file: {human_size(len(data))}]", is_binary=True, encoding="none")
    return FileContent(f"[binary file skipped: {human_size(len(data))}]", is_binary=True, encoding="none")


class ContentReader:
    """Reads file nodes into ``FileContent``."""

    def read(self, node: ContentNode, config: DigestConfig) -> FileContent:
        """Read and decode one file.

        Args:
            node: File or symlink node.
            config: Configuration snapshot.

        Returns:
            The decoded content.

        Raises:
            FileReadError: If the file cannot be read.
        """
        if node.is_symlink:
            try:
                target = os.readlink(node.path)
            except OSError as e:
                raise FileReadError(node.rel_path, e.strerror or str(e)) from e
            return FileContent(f"[symlink -> {target}]", encoding="none")

        try:
            with open(node.path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise FileReadError(node.rel_path, e.strerror or str(e)) from e

        if is_binary_sample(data[:SNIFF_BYTES]):
            logger.debug("Detected binary content in %s", node.rel_path)
            return render_binary(data, config.binary_file_policy)

        text = data.decode("utf-8", errors="replace")
        return FileContent(text.replace("\r\n", "\n"))
