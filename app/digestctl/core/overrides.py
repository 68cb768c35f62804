"""Threshold override collaborators and per-invocation override state.

A traversal or digest run asks an ``OverridePrompter`` before it goes past
80% of a quota. Non-interactive callers use ``AutoApprovePrompter``; the CLI
swaps in ``ConsolePrompter`` when prompting is enabled.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import typer

logger = logging.getLogger(__name__)

# Fraction of a quota at which the prompter is consulted
WARN_THRESHOLD = 0.8


class QuotaKind(str, Enum):
    """Quotas that support a one-shot override."""

    TOTAL_SIZE = "total_size"
    FILE_COUNT = "file_count"
    TOKENS = "tokens"


@dataclass(frozen=True, slots=True)
class ThresholdUsage:
    """Snapshot of quota usage passed to a prompter.

    Attributes:
        kind: Which quota is being approached.
        current: Projected usage (bytes, files or tokens).
        limit: Configured limit.
    """

    kind: QuotaKind
    current: int
    limit: int

    @property
    def percent(self) -> int:
        """Usage as a whole percentage of the limit."""
        if self.limit <= 0:
            return 0
        return int(self.current * 100 / self.limit)


class OverridePrompter(Protocol):
    """Decides whether a run may continue past a quota threshold."""

    def prompt_for_size_override(self, usage: ThresholdUsage) -> bool: ...

    def prompt_for_file_count_override(self, usage: ThresholdUsage) -> bool: ...

    def prompt_for_token_override(self, usage: ThresholdUsage) -> bool: ...


class AutoApprovePrompter:
    """Prompter for non-interactive contexts: every override is granted."""

    def prompt_for_size_override(self, usage: ThresholdUsage) -> bool:
        logger.debug("Auto-approving size override at %d%%", usage.percent)
        return True

    def prompt_for_file_count_override(self, usage: ThresholdUsage) -> bool:
        logger.debug("Auto-approving file count override at %d%%", usage.percent)
        return True

    def prompt_for_token_override(self, usage: ThresholdUsage) -> bool:
        logger.debug("Auto-approving token override at %d%%", usage.percent)
        return True


class ConsolePrompter:
    """Prompter that asks the user on the terminal."""

    def _confirm(self, message: str) -> bool:
        return typer.confirm(message, default=False)

    def prompt_for_size_override(self, usage: ThresholdUsage) -> bool:
        return self._confirm(
            f"Total size is at {usage.percent}% of the limit ({usage.current:,} of "
            f"{usage.limit:,} bytes). Continue?"
        )

    def prompt_for_file_count_override(self, usage: ThresholdUsage) -> bool:
        return self._confirm(
            f"File count is at {usage.percent}% of the limit ({usage.current:,} of "
            f"{usage.limit:,} files). Continue?"
        )

    def prompt_for_token_override(self, usage: ThresholdUsage) -> bool:
        return self._confirm(
            f"Token estimate is at {usage.percent}% of the limit ({usage.current:,} of "
            f"{usage.limit:,} tokens). Continue?"
        )


@dataclass(slots=True)
class OverrideState:
    """One-shot overrides and warned flags owned by a single invocation.

    Each traversal and each digest generation creates its own instance, so
    two runs in flight never share thresholds.
    """

    allow_size_once: bool = False
    allow_files_once: bool = False
    warned_size: bool = False
    warned_files: bool = False
    warned_tokens: bool = False

    def consume_size_override(self) -> bool:
        """Use up the size override if one is active."""
        if self.allow_size_once:
            self.allow_size_once = False
            return True
        return False

    def consume_files_override(self) -> bool:
        """Use up the file count override if one is active."""
        if self.allow_files_once:
            self.allow_files_once = False
            return True
        return False
