"""Cooperative cancellation shared by traversal and the worker pool."""

import threading

from digestctl.core.errors import CancelReason, OperationCancelledError


class CancellationToken:
    """Thread-safe cancellation flag polled at yield points.

    Neither the traversal nor the worker pool is ever preempted; both call
    :meth:`raise_if_cancelled` between units of work.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def is_cancellation_requested(self) -> bool:
        """True once :meth:`cancel` has been called."""
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise ``OperationCancelledError`` if cancellation was requested.

        Raises:
            OperationCancelledError: If the token has been cancelled.
        """
        if self._event.is_set():
            raise OperationCancelledError(CancelReason.REQUESTED)
