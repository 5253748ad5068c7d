"""Fan-out over an injected executor, safe for nested use.

Install trees fan out recursively: a branch running on a worker thread
submits its own branches to the same bounded pool and waits for them.
Waiting on a queued future from a worker can starve the pool, so
``gather`` runs every future that has not started yet inline in the
waiting thread.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, TypeVar


if TYPE_CHECKING:
    from concurrent.futures import Future

    from packstash.core.ports import ExecutorPort


T = TypeVar("T")
R = TypeVar("R")


def gather(
    executor: ExecutorPort | None,
    fn: Callable[[T], R],
    items: Iterable[T],
) -> list[R]:
    """Apply fn to every item concurrently and return results in item order.

    Args:
        executor: Executor to fan out on. None runs sequentially.
        fn: Function applied to each item.
        items: Inputs, one task each.

    Returns:
        Results in the order of items.

    Raises:
        Exception: The first exception raised by fn, in item order, after
            every task has settled.
    """
    items = list(items)
    if executor is None or len(items) <= 1:
        return [fn(item) for item in items]

    futures: list[Future[object]] = [executor.submit(fn, item) for item in items]
    outcomes: list[tuple[bool, object]] = []
    for item, future in zip(items, futures, strict=True):
        if future.cancel():
            # Still queued: run it here instead of waiting for a worker
            try:
                outcomes.append((True, fn(item)))
            except Exception as e:
                outcomes.append((False, e))
            continue
        try:
            outcomes.append((True, future.result()))
        except Exception as e:
            outcomes.append((False, e))

    results: list[R] = []
    for ok, value in outcomes:
        if not ok:
            assert isinstance(value, Exception)
            raise value
        results.append(value)  # type: ignore[arg-type]
    return results
