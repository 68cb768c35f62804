"""Unit tests for debounced progress reporting."""

import pytest
from digestctl.core.progress import DebouncedProgress, ProgressEvent


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestDebouncedProgress:
    """Tests for DebouncedProgress."""

    def test_first_update_delivered_immediately(self, clock: FakeClock) -> None:
        """The first event is not held back."""
        events: list[ProgressEvent] = []
        progress = DebouncedProgress(events.append, interval_ms=200, clock=clock)

        progress.update(ProgressEvent(op="scan", percent=1.0))

        assert [e.percent for e in events] == [1.0]

    def test_updates_within_interval_coalesce(self, clock: FakeClock) -> None:
        """Only the latest state inside an interval is delivered."""
        events: list[ProgressEvent] = []
        progress = DebouncedProgress(events.append, interval_ms=200, clock=clock)

        progress.update(ProgressEvent(op="scan", percent=1.0))
        clock.now = 0.05
        progress.update(ProgressEvent(op="scan", percent=2.0))
        clock.now = 0.10
        progress.update(ProgressEvent(op="scan", percent=3.0))
        assert [e.percent for e in events] == [1.0]

        clock.now = 0.25
        progress.update(ProgressEvent(op="scan", percent=4.0))
        assert [e.percent for e in events] == [1.0, 4.0]

    def test_flush_delivers_pending(self, clock: FakeClock) -> None:
        """flush() delivers the held-back event once."""
        events: list[ProgressEvent] = []
        progress = DebouncedProgress(events.append, interval_ms=200, clock=clock)

        progress.update(ProgressEvent(op="digest", percent=10.0))
        progress.update(ProgressEvent(op="digest", mode="complete", percent=100.0))
        progress.flush()
        progress.flush()

        assert [e.mode for e in events] == ["progress", "complete"]

    def test_sink_errors_are_swallowed(self, clock: FakeClock) -> None:
        """A failing observer never breaks the caller."""

        def sink(event: ProgressEvent) -> None:
            raise RuntimeError("observer gone")

        progress = DebouncedProgress(sink, clock=clock)
        progress.update(ProgressEvent(op="scan"))
        progress.flush()

    def test_no_sink_is_noop(self, clock: FakeClock) -> None:
        """Without a sink nothing happens."""
        progress = DebouncedProgress(None, clock=clock)
        progress.update(ProgressEvent(op="scan"))
        progress.flush()
