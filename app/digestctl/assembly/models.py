"""Data models produced by the digest pipeline."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class FileError:
    """A failure while processing one selected file."""

    path: str
    message: str
    stack: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"path": self.path, "message": self.message}
        if self.stack:
            data["stack"] = self.stack
        return data


@dataclass(frozen=True, slots=True)
class OutputObject:
    """Rendered header, body and import references of one file."""

    header: str
    body: str
    imports: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"header": self.header, "body": self.body, "imports": list(self.imports)}


@dataclass(frozen=True, slots=True)
class FileTaskResult:
    """Outcome of one per-file task.

    Attributes:
        index: Position of the file in the sorted selection.
        rel_path: Path relative to the scan root.
        header: Rendered header.
        body: Rendered body, or an ``ERROR:`` line when the task failed.
        token_cost: Token estimate of header and body.
        imports: Extracted import references.
        error: Failure details, if any.
    """

    index: int
    rel_path: str
    header: str
    body: str
    token_cost: int
    imports: tuple[str, ...] = ()
    error: FileError | None = None


@dataclass(slots=True)
class DigestResult:
    """The assembled digest.

    ``content`` is what gets written to any sink. ``chunks`` and
    ``output_objects`` are projections of it; whenever ``content`` is
    rebuilt it is derived from the current ``output_objects``.
    """

    summary: str
    tree: str
    content: str
    output_format: str
    chunks: list[str] = field(default_factory=list)
    output_objects: list[OutputObject] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    token_estimate: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
    errors: list[FileError] = field(default_factory=list)
    redaction_applied: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "summary": self.summary,
            "tree": self.tree,
            "output_format": self.output_format,
            "files": [item.to_dict() for item in self.output_objects],
            "warnings": list(self.warnings),
            "token_estimate": self.token_estimate,
            "metadata": self.metadata,
            "errors": [error.to_dict() for error in self.errors],
            "redaction_applied": self.redaction_applied,
        }
