"""Rich-based progress reporter for terminal output."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)


if TYPE_CHECKING:
    from types import TracebackType

    from rich.console import Console

    from packstash.core.ports import ProgressCallback


class RichProgressReporter:
    """Progress reporter using Rich for terminal display.

    Displays one bar per download with speed and ETA. Also implements
    InstallListener: a summary row counts finished installs against
    started ones, dependencies included.

    Example:
        with RichProgressReporter() as reporter:
            pipeline = InstallationPipeline.from_settings(
                settings, progress=reporter, listeners=[reporter]
            )
    """

    def __init__(self, console: Console | None = None) -> None:
        """Initialize the progress display."""
        self._progress = Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            console=console,
        )
        self._lock = threading.Lock()
        self._tasks: dict[str, TaskID] = {}
        self._summary: TaskID | None = None
        self._started = False

    def __enter__(self) -> RichProgressReporter:
        """Start the progress display."""
        self._start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Stop the progress display."""
        self._progress.stop()
        self._started = False

    def _start(self) -> None:
        if not self._started:
            self._progress.start()
            self._started = True

    def start_task(self, name: str, total: int) -> ProgressCallback:
        """Start tracking a download task.

        Args:
            name: Human-readable name for the task.
            total: Total bytes to download (0 if unknown).

        Returns:
            A callback to update progress.
        """
        with self._lock:
            # Auto-start if not in context manager
            self._start()
            task_id = self._progress.add_task(name, total=total or None)
            self._tasks[name] = task_id

        def callback(downloaded: int, total_bytes: int) -> None:
            self._progress.update(task_id, completed=downloaded, total=total_bytes or None)

        return callback

    def finish_task(self, name: str) -> None:
        """Mark a task as complete.

        Args:
            name: The task name.
        """
        with self._lock:
            task_id = self._tasks.pop(name, None)
        if task_id is not None:
            task = self._progress.tasks[task_id]
            self._progress.update(task_id, completed=task.total or task.completed)

    # InstallListener

    def download_start(self, file_id: int) -> None:
        """Count a started install."""
        _ = file_id
        with self._lock:
            if self._summary is None:
                self._summary = self._progress.add_task("Installs", total=0, visible=False)
            task = self._progress.tasks[self._summary]
            self._progress.update(self._summary, total=(task.total or 0) + 1)

    def download_end(self, file_id: int) -> None:
        """Count a finished install."""
        _ = file_id
        with self._lock:
            if self._summary is None:
                return
            self._progress.advance(self._summary)

    @property
    def installs(self) -> tuple[int, int]:
        """(finished, started) installs seen by this reporter."""
        with self._lock:
            if self._summary is None:
                return 0, 0
            task = self._progress.tasks[self._summary]
            return int(task.completed), int(task.total or 0)
