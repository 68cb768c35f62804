"""Digest assembly: reading, formatting, redaction and token accounting."""

from digestctl.assembly.formatters import OutputFormatter, get_formatter
from digestctl.assembly.handlers import ContentHandler, ContentHandlerRegistry, TokenizerRegistry, extension_handler
from digestctl.assembly.models import DigestResult, FileError, OutputObject
from digestctl.assembly.pipeline import AssemblyPipeline
from digestctl.assembly.redaction import Redactor, redact_secrets

__all__ = [
    "AssemblyPipeline",
    "ContentHandler",
    "ContentHandlerRegistry",
    "DigestResult",
    "FileError",
    "OutputFormatter",
    "OutputObject",
    "Redactor",
    "TokenizerRegistry",
    "extension_handler",
    "get_formatter",
    "redact_secrets",
]
