"""Executor adapters implementing ExecutorPort."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Callable


class SynchronousExecutor:
    """Executor that runs tasks immediately in the calling thread.

    Used for sequential installs and in tests: dependency branches are then
    resolved and installed one after another, in declaration order.
    """

    def submit(
        self,
        fn: Callable[..., object],
        *args: object,
        **kwargs: object,
    ) -> Future[object]:
        """Execute function immediately and return completed future.

        Args:
            fn: Function to execute.
            *args: Positional arguments to pass to fn.
            **kwargs: Keyword arguments to pass to fn.

        Returns:
            Future with result already available.
        """
        future: Future[object] = Future()
        try:
            result = fn(*args, **kwargs)
            future.set_result(result)
        except Exception as e:
            future.set_exception(e)
        return future

    def shutdown(self, wait: bool = True) -> None:
        """Nothing to release."""
        _ = wait

    def __enter__(self) -> SynchronousExecutor:
        """Enter context manager."""
        return self

    def __exit__(
        self, exc_type: object, exc_val: object, exc_tb: object
    ) -> object | None:
        """Exit context manager (no-op for synchronous executor)."""
        return None


class ThreadPoolExecutorAdapter:
    """Adapter wrapping ThreadPoolExecutor to implement ExecutorPort.

    The pool is long-lived: one pipeline reuses it for every install, so
    it is only shut down by shutdown() or by leaving a ``with`` block.
    """

    def __init__(
        self, max_workers: int | None = None, thread_name_prefix: str = "packstash"
    ) -> None:
        """Initialize thread pool executor adapter.

        Args:
            max_workers: Maximum number of worker threads. None uses default.
            thread_name_prefix: Prefix of worker thread names, shown in logs.
        """
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=thread_name_prefix
        )

    def submit(
        self,
        fn: Callable[..., object],
        *args: object,
        **kwargs: object,
    ) -> Future[object]:
        """Submit function to thread pool.

        Args:
            fn: Function to execute.
            *args: Positional arguments to pass to fn.
            **kwargs: Keyword arguments to pass to fn.

        Returns:
            Future representing the pending result.
        """
        return self._executor.submit(fn, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work and release the worker threads."""
        self._executor.shutdown(wait=wait, cancel_futures=not wait)

    def __enter__(self) -> ThreadPoolExecutorAdapter:
        """Enter context manager."""
        return self

    def __exit__(
        self, exc_type: object, exc_val: object, exc_tb: object
    ) -> object | None:
        """Exit context manager, waiting for submitted work."""
        self.shutdown(wait=True)
        return None
