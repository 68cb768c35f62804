"""Debounced progress reporting.

Observers receive at most one event per interval; intermediate states are
overwritten by the latest one. Sink failures are logged and never reach the
traversal or the pool.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS = 200


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """A progress update.

    Attributes:
        op: Operation name ("scan" or "digest").
        mode: Phase within the operation ("progress" or "complete").
        percent: Completion percentage when known.
        message: Human-readable status line.
    """

    op: str
    mode: str = "progress"
    percent: float | None = None
    message: str | None = None


ProgressSink = Callable[[ProgressEvent], None]


class DebouncedProgress:
    """Coalesces progress events and flushes them on a fixed interval.

    Args:
        sink: Callable receiving flushed events. None disables reporting.
        interval_ms: Minimum time between two deliveries.
        clock: Monotonic clock in seconds, injectable for tests.
    """

    def __init__(
        self,
        sink: ProgressSink | None,
        *,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sink = sink
        self._interval = interval_ms / 1000.0
        self._clock = clock
        self._pending: ProgressEvent | None = None
        self._last_flush: float | None = None

    def update(self, event: ProgressEvent) -> None:
        """Record the latest state, delivering it if the interval elapsed."""
        if self._sink is None:
            return
        self._pending = event
        now = self._clock()
        if self._last_flush is None or now - self._last_flush >= self._interval:
            self.flush()

    def flush(self) -> None:
        """Deliver the pending event, if any."""
        if self._sink is None or self._pending is None:
            return
        event = self._pending
        self._pending = None
        self._last_flush = self._clock()
        try:
            self._sink(event)
        except Exception as e:
            logger.warning("Progress sink failed: %s", e)
