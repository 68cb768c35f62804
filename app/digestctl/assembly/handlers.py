"""Content handler and tokenizer registries.

A content handler pairs a side-effect free predicate with a separate handle
function. The pipeline asks the registry for the first handler whose
predicate accepts a node and, when one exists, uses its output as the file
body instead of the formatter's default.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from digestctl.assembly.tokens import TiktokenTokenizer
from digestctl.core.config import DigestConfig
from digestctl.traversal.models import ContentNode

logger = logging.getLogger(__name__)

HandlerOutput = str | bytes
Tokenizer = Callable[[str, DigestConfig], int]


@dataclass(frozen=True, slots=True)
class ContentHandler:
    """A specialised content renderer.

    Attributes:
        name: Handler identifier used in logs.
        predicate: Pure test deciding whether the handler applies to a node.
        handle: Produces the body; bytes are treated as binary content.
    """

    name: str
    predicate: Callable[[ContentNode], bool]
    handle: Callable[[ContentNode, DigestConfig], HandlerOutput]


def extension_handler(
    name: str,
    extensions: Iterable[str],
    handle: Callable[[ContentNode, DigestConfig], HandlerOutput],
) -> ContentHandler:
    """Create a handler that applies to the given file extensions.

    Example:
        >>> handler = extension_handler("csv", [".csv"], lambda node, cfg: "table")
        >>> handler.name
        'csv'
    """
    wanted = frozenset(ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in extensions)
    return ContentHandler(name=name, predicate=lambda node: node.extension in wanted, handle=handle)


class ContentHandlerRegistry:
    """Ordered lookup of content handlers."""

    def __init__(self, handlers: Iterable[ContentHandler] = ()) -> None:
        self._handlers: list[ContentHandler] = list(handlers)

    @property
    def handlers(self) -> tuple[ContentHandler, ...]:
        return tuple(self._handlers)

    def register(self, handler: ContentHandler) -> None:
        """Append a handler; earlier registrations win."""
        self._handlers.append(handler)

    def resolve(self, node: ContentNode) -> ContentHandler | None:
        """Return the first handler accepting the node.

        A predicate that raises is logged and treated as not matching.
        """
        for handler in self._handlers:
            try:
                if handler.predicate(node):
                    return handler
            except Exception as e:
                logger.warning("Content handler %s predicate failed for %s: %s", handler.name, node.rel_path, e)
        return None


class TokenizerRegistry:
    """Named tokenizer adapters.

    When no adapter is registered for the configured model, the pipeline
    falls back to its character-ratio estimator.
    """

    def __init__(self) -> None:
        self._tokenizers: dict[str, Tokenizer] = {}

    @classmethod
    def with_defaults(cls) -> "TokenizerRegistry":
        """Create a registry holding the built-in ``tiktoken`` adapter."""
        registry = cls()
        registry.register("tiktoken", TiktokenTokenizer())
        return registry

    def register(self, name: str, tokenizer: Tokenizer) -> None:
        self._tokenizers[name] = tokenizer

    def get(self, name: str) -> Tokenizer | None:
        return self._tokenizers.get(name)

    @property
    def names(self) -> list[str]:
        return sorted(self._tokenizers)
