"""Output formatters for markdown, text and JSON digests.

A formatter renders a per-file header, a per-file body and the final
document. Formatters hold no state.
"""

import json
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from digestctl.assembly.content import FileContent
from digestctl.assembly.models import OutputObject
from digestctl.assembly.summary import human_size
from digestctl.core.config import DigestConfig
from digestctl.traversal.models import ContentNode

LANGUAGE_BY_EXTENSION: dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "jsx",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".java": "java",
    ".go": "go",
    ".rs": "rust",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".cs": "csharp",
    ".rb": "ruby",
    ".php": "php",
    ".swift": "swift",
    ".kt": "kotlin",
    ".scala": "scala",
    ".sh": "bash",
    ".bash": "bash",
    ".zsh": "bash",
    ".pl": "perl",
    ".lua": "lua",
    ".dart": "dart",
    ".groovy": "groovy",
    ".sql": "sql",
    ".html": "html",
    ".css": "css",
    ".scss": "scss",
    ".json": "json",
    ".xml": "xml",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".toml": "toml",
    ".ini": "ini",
    ".md": "markdown",
    ".rst": "rst",
    ".dockerfile": "dockerfile",
}

MARKDOWN_EXTENSIONS = frozenset({".md", ".markdown", ".mdx"})
FENCE = "```"


def infer_language(extension: str) -> str:
    """Return the fence language for an extension, or '' if unknown."""
    return LANGUAGE_BY_EXTENSION.get(extension.lower(), "")


def render_header(node: ContentNode, template: str) -> str:
    """Fill the ``<relPath>``, ``<size>`` and ``<modified>`` header tokens.

    Symlinks are marked with `` [symlink]``. The header always ends with a
    newline.
    """
    modified = node.mtime.isoformat(timespec="seconds") if node.mtime else "unknown"
    header = (
        template.replace("<relPath>", node.rel_path)
        .replace("<size>", human_size(node.size))
        .replace("<modified>", modified)
    )
    if node.is_symlink:
        header += " [symlink]"
    return header if header.endswith("\n") else header + "\n"


class OutputFormatter(ABC):
    """Renders headers, bodies and the final document of one format."""

    name: str = ""

    def build_header(self, node: ContentNode, config: DigestConfig) -> str:
        return render_header(node, config.output_header_template)

    @abstractmethod
    def build_body(self, content: FileContent, node: ContentNode, config: DigestConfig) -> str:
        """Render a file body."""

    def render_chunk(self, item: OutputObject) -> str:
        return f"{item.header}{item.body}\n"

    def render_leading(self, summary: str, tree: str) -> str:
        """Render the block placed before the first file."""
        parts = [summary.rstrip("\n")] if summary else []
        if tree:
            parts.append(self.render_tree_block(tree))
        return "\n\n".join(parts) + "\n" if parts else ""

    def render_tree_block(self, tree: str) -> str:
        return f"Directory Tree:\n{tree}"

    def finalize(self, chunks: Sequence[str], config: DigestConfig) -> str:
        """Join chunks into the final document."""
        return config.output_separator.join(chunks)


class MarkdownFormatter(OutputFormatter):
    """Fenced code blocks with an inferred language."""

    name = "markdown"

    def build_body(self, content: FileContent, node: ContentNode, config: DigestConfig) -> str:
        if content.encoding == "base64":
            return f"{FENCE}base64\n{content.text}\n{FENCE}"
        if content.encoding == "none" or node.extension in MARKDOWN_EXTENSIONS or FENCE in content.text:
            return content.text
        text = content.text if content.text.endswith("\n") else content.text + "\n"
        return f"{FENCE}{infer_language(node.extension)}\n{text}{FENCE}"

    def render_tree_block(self, tree: str) -> str:
        return f"## Directory Tree\n\n{FENCE}text\n{tree}\n{FENCE}"


class TextFormatter(OutputFormatter):
    """Plain concatenation."""

    name = "text"

    def build_body(self, content: FileContent, node: ContentNode, config: DigestConfig) -> str:
        return content.text


class JsonFormatter(OutputFormatter):
    """A single JSON document; chunks are not concatenated."""

    name = "json"

    def build_header(self, node: ContentNode, config: DigestConfig) -> str:
        return node.rel_path

    def build_body(self, content: FileContent, node: ContentNode, config: DigestConfig) -> str:
        return content.text

    def render_document(
        self,
        *,
        summary: str,
        tree: str,
        files: Sequence[OutputObject],
        warnings: Sequence[str],
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Serialize the canonical digest document."""
        document: dict[str, Any] = {
            "summary": summary,
            "tree": tree,
            "files": [item.to_dict() for item in files],
            "warnings": list(warnings),
        }
        if metadata is not None:
            document["metadata"] = metadata
        return json.dumps(document, indent=2, ensure_ascii=False)


FORMATTERS: dict[str, OutputFormatter] = {
    formatter.name: formatter for formatter in (MarkdownFormatter(), TextFormatter(), JsonFormatter())
}


def get_formatter(name: str) -> OutputFormatter:
    """Look up a formatter by name.

    Raises:
        ValueError: If no formatter has that name.
    """
    try:
        return FORMATTERS[name.lower()]
    except KeyError:
        msg = f"Unknown output format: {name} (expected one of {', '.join(FORMATTERS)})"
        raise ValueError(msg) from None
