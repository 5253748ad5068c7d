"""Port interfaces for hexagonal architecture.

Ports define contracts that adapters must implement. The core domain
depends only on these protocols, never on concrete implementations.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from packstash.core.models import ProgressCallback


if TYPE_CHECKING:
    from concurrent.futures import Future
    from pathlib import Path

    from packstash.core.models import (
        CachedResource,
        Category,
        DownloadTask,
        FilePage,
        LoaderType,
        PackageFile,
        ProjectMetadata,
        ResourceDomain,
        SearchOptions,
    )


@runtime_checkable
class CatalogPort(Protocol):
    """Read-only query surface over the remote catalog.

    All operations are idempotent. Implementations raise CatalogError
    subclasses on failure.
    """

    def get_categories(self) -> list[Category]:
        """List all categories and classes of the game."""
        ...

    def get_project(self, project_id: int) -> ProjectMetadata:
        """Get one project's metadata."""
        ...

    def get_project_description(self, project_id: int) -> str:
        """Get a project's long description (HTML)."""
        ...

    def get_project_files(
        self,
        project_id: int,
        *,
        game_version: str | None = None,
        loader_type: LoaderType | None = None,
        page_size: int = 50,
        index: int = 0,
    ) -> FilePage:
        """List a project's files, best match first.

        Args:
            project_id: Project to list files for.
            game_version: Only files tagged with this game version.
            loader_type: Only files for this loader; None or ANY for all.
            page_size: Maximum number of files in the page.
            index: Offset of the first file.
        """
        ...

    def get_project_file(self, project_id: int, file_id: int) -> PackageFile:
        """Get a single file of a project."""
        ...

    def get_projects(self, project_ids: Sequence[int]) -> list[ProjectMetadata]:
        """Get metadata of several projects in one request."""
        ...

    def get_files(self, file_ids: Sequence[int]) -> list[PackageFile]:
        """Get several files in one request."""
        ...

    def search_projects(self, options: SearchOptions) -> list[ProjectMetadata]:
        """Search projects matching the options."""
        ...


@runtime_checkable
class ContentStorePort(Protocol):
    """Content-addressed cache of installed artifacts, keyed by identity."""

    def get_one(self, identity_uris: frozenset[str]) -> CachedResource | None:
        """Get the resource named by any of the identity URIs, or None."""
        ...

    def import_resource(
        self,
        source_path: Path,
        identity_uris: frozenset[str],
        *,
        domain: ResourceDomain,
        file_name: str,
        metadata: Mapping[str, Any] | None = None,
        icons: Sequence[str] = (),
        tags: Sequence[str] = (),
    ) -> CachedResource:
        """Import a local file under the identity URIs.

        Concurrent imports under the same identity must produce a single
        stored copy; every caller receives the winning resource.
        """
        ...

    def install(self, workspace_path: Path, resource: CachedResource) -> Path:
        """Link or copy a resource into a workspace. Returns the linked path."""
        ...


@runtime_checkable
class TransportPort(Protocol):
    """Fetches one mirror URL into a local file."""

    def download(self, source: str, dest: Path, progress: ProgressCallback) -> None:
        """Download source to dest, reporting (bytes_downloaded, total_bytes).

        Raises:
            TransportNotFoundError: If the mirror does not have the file.
            TransportError: For any other failure.
        """
        ...


@runtime_checkable
class DownloadHandle(Protocol):
    """Cancellable, progress-reporting completion handle of a download."""

    @property
    def progress(self) -> tuple[int, int]:
        """Current (bytes_downloaded, total_bytes)."""
        ...

    def result(self, timeout: float | None = None) -> Path:
        """Block until the download finished; return the verified file."""
        ...

    def cancel(self) -> None:
        """Request cancellation of the download."""
        ...

    def done(self) -> bool:
        """Whether the download has finished in any way."""
        ...


@runtime_checkable
class TaskSchedulerPort(Protocol):
    """Accepts download tasks and runs them in the background."""

    def submit(self, task: DownloadTask) -> DownloadHandle:
        """Submit a task; return its completion handle."""
        ...


@runtime_checkable
class ProgressReporter(Protocol):
    """Reports download progress to the user.

    This protocol defines the contract for progress display adapters.
    The core domain uses this to report progress without depending
    on any specific UI library.
    """

    def start_task(self, name: str, total: int) -> ProgressCallback:
        """Start tracking a download task.

        Args:
            name: Human-readable name for the task (file display name).
            total: Total bytes to download.

        Returns:
            A ProgressCallback to call with (bytes_downloaded, total_bytes).
        """
        ...

    def finish_task(self, name: str) -> None:
        """Mark a task as complete.

        Args:
            name: The task name passed to start_task().
        """
        ...


class NullProgressReporter:
    """A ProgressReporter that produces no output.

    Used as the default when no progress reporting is desired.
    """

    def start_task(self, name: str, total: int) -> ProgressCallback:  # noqa: ARG002
        """Return a no-op callback."""
        return lambda _downloaded, _total: None

    def finish_task(self, name: str) -> None:
        """Do nothing."""
        _ = name  # Unused but required by protocol


@runtime_checkable
class InstallListener(Protocol):
    """Observes install start and end events, keyed by file id."""

    def download_start(self, file_id: int) -> None: ...

    def download_end(self, file_id: int) -> None: ...


class NullInstallListener:
    """An InstallListener that ignores all events."""

    def download_start(self, file_id: int) -> None:
        _ = file_id

    def download_end(self, file_id: int) -> None:
        _ = file_id


@runtime_checkable
class ExecutorPort(Protocol):
    """Executor for parallel task execution.

    Abstracts over concurrent.futures executors to allow dependency injection
    and testing. The core domain uses this protocol instead of directly
    importing ThreadPoolExecutor, maintaining "concurrency at the edges".
    """

    def submit(
        self, fn: Callable[..., object], *args: object, **kwargs: object
    ) -> Future[object]:  # type: ignore[name-defined, unused-ignore]
        """Submit a function for execution.

        Args:
            fn: Function to execute.
            *args: Positional arguments to pass to fn.
            **kwargs: Keyword arguments to pass to fn.

        Returns:
            Future representing the pending result.
        """
        ...

    def __enter__(self) -> ExecutorPort:
        """Enter context manager."""
        ...

    def __exit__(
        self, exc_type: object, exc_val: object, exc_tb: object
    ) -> object | None:
        """Exit context manager."""
        ...
