"""Token estimation.

The default estimate divides the character count by a per-model ratio.
``TiktokenTokenizer`` counts real BPE tokens when the optional ``tiktoken``
package is installed (``pip install digestctl[tiktoken]``).
"""

import math
import threading
from collections.abc import Mapping
from typing import Any

from digestctl.core.config import DigestConfig

DEFAULT_MODEL = "chars-approx"

# Average characters per token
MODEL_DIVISORS: dict[str, float] = {
    "chars-approx": 4.0,
    "gpt-4o": 3.8,
    "gpt-4": 4.0,
    "claude-3-haiku": 3.6,
}


class TokenEstimator:
    """Estimates token counts from text length.

    Args:
        divisors: Characters-per-token ratios keyed by model name.
    """

    def __init__(self, divisors: Mapping[str, float] | None = None) -> None:
        self._divisors = dict(MODEL_DIVISORS if divisors is None else divisors)

    def divisor_for(self, model: str, overrides: Mapping[str, float] | None = None) -> float:
        """Return the ratio for a model, falling back to the default model."""
        if overrides and overrides.get(model, 0) > 0:
            return overrides[model]
        return self._divisors.get(model) or self._divisors.get(DEFAULT_MODEL, 4.0)

    def estimate(
        self,
        text: str,
        model: str = DEFAULT_MODEL,
        overrides: Mapping[str, float] | None = None,
    ) -> int:
        """Estimate the token count of ``text``, rounded up."""
        if not text:
            return 0
        return math.ceil(len(text) / self.divisor_for(model, overrides))


def k_suffix(value: int) -> str:
    """Abbreviate a count: 950, 1.2k, 3.4M."""
    if value < 1000:
        return str(value)
    if value < 1_000_000:
        return f"{value / 1000:.1f}k"
    return f"{value / 1_000_000:.1f}M"


def format_estimate(tokens: int) -> str:
    """Format a token estimate for display."""
    return f"~{k_suffix(tokens)} tokens"


def limit_warning(tokens: int, limit: int) -> str | None:
    """Return the over-limit warning, or None when within the limit."""
    if limit <= 0 or tokens <= limit:
        return None
    return f"Token estimate {k_suffix(tokens)} exceeds context limit ({k_suffix(limit)})."


def _load_encoding(name: str) -> Any:
    import tiktoken

    return tiktoken.get_encoding(name)


class TiktokenTokenizer:
    """Tokenizer adapter backed by a tiktoken encoding.

    The encoding is loaded on first use, so registering the adapter costs
    nothing when another model is configured. A missing ``tiktoken`` package
    surfaces as ``ImportError`` from the call, which the pipeline turns into
    a fallback to the character estimate.

    Args:
        encoding_name: tiktoken encoding, ``cl100k_base`` by default.
    """

    def __init__(self, encoding_name: str = "cl100k_base") -> None:
        self.encoding_name = encoding_name
        self._encoding: Any = None
        self._lock = threading.Lock()

    def __call__(self, text: str, config: DigestConfig) -> int:
        if not text:
            return 0
        return len(self._get_encoding().encode(text, disallowed_special=()))

    def _get_encoding(self) -> Any:
        with self._lock:
            if self._encoding is None:
                self._encoding = _load_encoding(self.encoding_name)
            return self._encoding
