"""Exception taxonomy for digestctl.

Only two classes of error are allowed to escape the traversal and assembly
boundaries: ``OperationCancelledError`` and ``InvalidRootError``. Everything
else is recorded into warnings or per-file errors on the returned result.
"""

from enum import Enum


class CancelReason(str, Enum):
    """Why an operation was cancelled."""

    REQUESTED = "requested"
    SIZE_DECLINED = "size_declined"
    FILES_DECLINED = "files_declined"
    TOKENS_DECLINED = "tokens_declined"


class DigestError(Exception):
    """Base exception for digestctl errors."""


class OperationCancelledError(DigestError):
    """Raised when a traversal or digest generation is cancelled.

    Inner layers must propagate this exception unchanged so callers can tell
    a cancellation apart from an I/O failure.

    Attributes:
        reason: What triggered the cancellation.
    """

    def __init__(self, reason: CancelReason = CancelReason.REQUESTED, message: str | None = None) -> None:
        self.reason = reason
        super().__init__(message or f"Operation cancelled ({reason.value})")


class InvalidRootError(DigestError):
    """Raised when a scan root does not exist or is not a directory."""


class PathTraversalError(DigestError):
    """Raised when a path resolves outside of the scan root."""

    def __init__(self, path: str, root: str) -> None:
        self.path = path
        self.root = root
        super().__init__(f"Path escapes scan root: {path} (root: {root})")


class FileReadError(DigestError):
    """Raised when file content cannot be read."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"Failed to read {path}: {message}")
