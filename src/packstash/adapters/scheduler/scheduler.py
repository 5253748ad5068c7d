"""Threaded download scheduler implementing TaskSchedulerPort."""

from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import CancelledError, Future
from typing import TYPE_CHECKING

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from packstash.adapters.transport.http import TransientHttpError
from packstash.core.checksums import verify_file
from packstash.core.exceptions import (
    DownloadVerificationError,
    InstallCancelledError,
    TransportError,
)


if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from tenacity import RetryCallState

    from packstash.core.models import DownloadTask
    from packstash.core.ports import ExecutorPort, TransportPort


logger = logging.getLogger(__name__)


class DownloadFuture:
    """Completion handle of one scheduled download.

    Implements DownloadHandle. Cancelling sets a flag checked on every
    progress report, so a running transfer stops at its next chunk.
    """

    def __init__(self, task: DownloadTask) -> None:
        self.task = task
        self._future: Future[Path] | None = None
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._progress = (0, 0)

    @property
    def progress(self) -> tuple[int, int]:
        """Current (bytes_downloaded, total_bytes)."""
        with self._lock:
            return self._progress

    def result(self, timeout: float | None = None) -> Path:
        """Wait for the verified file.

        Raises:
            DownloadVerificationError: If every mirror failed.
            InstallCancelledError: If the download was cancelled.
        """
        if self._future is None:
            raise RuntimeError("Download was never started")
        try:
            return self._future.result(timeout)
        except CancelledError:
            raise InstallCancelledError(f"Download of {self.task.name} was cancelled") from None

    def cancel(self) -> None:
        """Cancel the download; a queued one never starts."""
        self._cancelled.set()
        if self._future is not None:
            self._future.cancel()

    def done(self) -> bool:
        """Whether the download finished, failed or was cancelled."""
        return self._future is not None and self._future.done()

    def raise_if_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise InstallCancelledError(f"Download of {self.task.name} was cancelled")

    def _report(self, downloaded: int, total: int) -> None:
        self.raise_if_cancelled()
        with self._lock:
            self._progress = (downloaded, total)
        if self.task.progress is not None:
            self.task.progress(downloaded, total)


class ThreadedTaskScheduler:
    """Runs download tasks on an executor, one mirror after another.

    Each mirror is retried on transient errors with exponential backoff.
    The file is written to ``<destination>.part``, verified against the
    task checksum and only then renamed into place, so the destination
    never holds a partial or corrupt file.
    """

    def __init__(
        self,
        transport: TransportPort,
        executor: ExecutorPort | None = None,
        *,
        backoff: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the scheduler.

        Args:
            transport: Transport used for every mirror URL.
            executor: Executor running the downloads. None runs them inline.
            backoff: Base delay in seconds between retries of one mirror.
            sleep: Sleep function used between retries (tests pass a no-op).
        """
        from packstash.adapters.executor import SynchronousExecutor

        self._transport = transport
        self._executor = executor or SynchronousExecutor()
        self._backoff = backoff
        self._sleep = sleep

    def submit(self, task: DownloadTask) -> DownloadFuture:
        """Schedule a task and return its handle."""
        handle = DownloadFuture(task)
        handle._future = self._executor.submit(self._run, handle)  # type: ignore[assignment]
        return handle

    def _run(self, handle: DownloadFuture) -> Path:
        task = handle.task
        handle.raise_if_cancelled()
        task.destination.parent.mkdir(parents=True, exist_ok=True)
        part = task.destination.with_name(f"{task.destination.name}.part")
        errors: list[str] = []
        try:
            for url in task.urls:
                handle.raise_if_cancelled()
                try:
                    self._fetch(url, part, handle)
                except (TransportError, ValueError) as e:
                    # ValueError: no transport for the URL's scheme
                    logger.warning("Mirror %s failed for %s: %s", url, task.name, e)
                    errors.append(f"{url}: {e}")
                    continue

                if not verify_file(part, task.checksum):
                    logger.warning("Checksum mismatch for %s from %s", task.name, url)
                    errors.append(f"{url}: checksum mismatch")
                    continue

                os.replace(part, task.destination)
                logger.info("Downloaded %s from %s", task.name, url)
                return task.destination
        finally:
            part.unlink(missing_ok=True)

        raise DownloadVerificationError(
            f"Failed to download {task.name} from {len(task.urls)} mirror(s)",
            name=task.name,
            urls=list(task.urls),
            errors=errors,
        )

    def _fetch(self, url: str, part: Path, handle: DownloadFuture) -> None:
        retrying = Retrying(
            retry=retry_if_exception_type(TransientHttpError),
            stop=stop_after_attempt(max(1, handle.task.retries)),
            wait=wait_exponential(multiplier=self._backoff, max=10),
            sleep=self._sleep,
            reraise=True,
            before_sleep=_log_retry,
        )
        retrying(self._transport.download, url, part, handle._report)


def _log_retry(state: RetryCallState) -> None:
    error = state.outcome.exception() if state.outcome else None
    logger.info("Retrying download (attempt %d): %s", state.attempt_number, error)
