"""Bounded worker pool with index-ordered results.

Tasks may complete in any order; results are stored by submission index so
the returned list always follows the input order.
"""

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import TypeVar

from digestctl.core.cancellation import CancellationToken

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CONCURRENCY = 8


def run_pool(
    tasks: Sequence[Callable[[], T]],
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    token: CancellationToken | None = None,
    on_result: Callable[[int, T], None] | None = None,
) -> list[T]:
    """Run tasks with at most ``concurrency`` in flight.

    ``on_result`` runs on the calling thread as each task finishes, which
    makes it the only place where shared accumulators are updated. If it
    raises, or if the token is cancelled, no further tasks are started,
    in-flight tasks are allowed to finish and the exception propagates.

    Args:
        tasks: Zero-argument callables. Exceptions raised by a task propagate.
        concurrency: Maximum number of tasks running at once.
        token: Optional cancellation token polled before each submission.
        on_result: Callback receiving ``(index, result)`` in completion order.

    Returns:
        Task results in submission order.

    Raises:
        OperationCancelledError: If the token is cancelled before all tasks ran.
    """
    width = max(1, concurrency)
    results: list[T | None] = [None] * len(tasks)
    if not tasks:
        return []

    next_index = 0
    pending: dict[Future[T], int] = {}
    with ThreadPoolExecutor(max_workers=width, thread_name_prefix="digestctl-pool") as executor:
        while next_index < len(tasks) or pending:
            if token is not None:
                token.raise_if_cancelled()
            while next_index < len(tasks) and len(pending) < width:
                pending[executor.submit(tasks[next_index])] = next_index
                next_index += 1

            done, _ = wait(pending, return_when=FIRST_COMPLETED)
            # Fold same-batch completions in index order for stable callbacks
            for future in sorted(done, key=lambda f: pending[f]):
                index = pending.pop(future)
                value = future.result()
                results[index] = value
                if on_result is not None:
                    on_result(index, value)

        if token is not None:
            token.raise_if_cancelled()

    logger.debug("Worker pool finished %d tasks with width %d", len(tasks), width)
    return results  # type: ignore[return-value]
