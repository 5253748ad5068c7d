"""Pytest configuration and shared fixtures.

This module registers custom markers for CI job separation and provides
fake port implementations shared by the unit tests.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import Future
from pathlib import Path

import pytest

from packstash.core.exceptions import CatalogError
from packstash.core.models import (
    Category,
    DependencyEdge,
    DownloadTask,
    FileHash,
    FilePage,
    GameVersionTag,
    LoaderType,
    PackageFile,
    ProjectMetadata,
    RelationKind,
    SearchOptions,
)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "core: Core models, ports, and services")
    config.addinivalue_line("markers", "store: Content store adapter")
    config.addinivalue_line("markers", "transport: Transport adapters (http, s3, filesystem)")
    config.addinivalue_line("markers", "catalog: Catalog adapters")
    config.addinivalue_line("markers", "progress: Rich progress integration")
    config.addinivalue_line("markers", "cli: CLI tests")
    config.addinivalue_line(
        "markers", "tra: Test Responsibility Anchor (TRA) - namespace.Anchor format"
    )
    config.addinivalue_line(
        "markers",
        "tier: Test tier for CI job separation (0=instant, 1=fast, 2=standard, 3=slow, 4=manual)",
    )


FileFactory = Callable[..., PackageFile]


@pytest.fixture
def make_file() -> FileFactory:
    """Factory for PackageFile test data.

    ``deps`` maps project ids to relation kinds; ``tags`` are game version
    strings ("1.20.1") or loader names ("Forge").
    """

    def factory(
        file_id: int,
        project_id: int,
        *,
        deps: Sequence[tuple[int, RelationKind]] = (),
        tags: Sequence[str] = (),
        name: str | None = None,
        url: str | None = "",
        sha1: str | None = None,
    ) -> PackageFile:
        file_name = name or f"file-{file_id}.jar"
        return PackageFile(
            id=file_id,
            project_id=project_id,
            display_name=file_name,
            file_name=file_name,
            download_url=(
                f"https://files.example.com/{file_id}/{file_name}" if url == "" else url
            ),
            hashes=(FileHash("sha1", sha1),) if sha1 else (),
            dependencies=tuple(DependencyEdge(pid, kind) for pid, kind in deps),
            game_versions=tuple(
                GameVersionTag(game_version=tag, game_version_name=tag)
                if tag[0].isdigit()
                else GameVersionTag(game_version="", game_version_name=tag)
                for tag in tags
            ),
        )

    return factory


class FakeCatalog:
    """In-memory CatalogPort recording every file query."""

    def __init__(self) -> None:
        self.files: dict[int, list[PackageFile]] = {}
        self.projects: dict[int, ProjectMetadata] = {}
        self.failing: set[int] = set()
        self.queries: list[tuple[int, str | None, LoaderType | None]] = []
        self.project_calls: list[int] = []
        self._lock = threading.Lock()

    def add(self, *files: PackageFile) -> None:
        for file in files:
            self.files.setdefault(file.project_id, []).append(file)
            self.projects.setdefault(
                file.project_id,
                ProjectMetadata(
                    id=file.project_id,
                    name=f"Project {file.project_id}",
                    thumbnail_url=f"https://media.example.com/{file.project_id}.png",
                ),
            )

    def get_categories(self) -> list[Category]:
        return [
            Category(id=6, name="Mods", slug="mc-mods", is_class=True),
            Category(id=421, name="API and Library", slug="library-api", class_id=6),
        ]

    def get_project(self, project_id: int) -> ProjectMetadata:
        with self._lock:
            self.project_calls.append(project_id)
        if project_id in self.failing or project_id not in self.projects:
            raise CatalogError(f"No project {project_id}", status_code=404)
        return self.projects[project_id]

    def get_project_description(self, project_id: int) -> str:
        return f"<p>{self.get_project(project_id).name}</p>"

    def get_project_files(
        self,
        project_id: int,
        *,
        game_version: str | None = None,
        loader_type: LoaderType | None = None,
        page_size: int = 50,
        index: int = 0,
    ) -> FilePage:
        with self._lock:
            self.queries.append((project_id, game_version, loader_type))
        if project_id in self.failing:
            raise CatalogError(f"Lookup of {project_id} failed", status_code=500)
        data = tuple(self.files.get(project_id, [])[index : index + page_size])
        return FilePage(data=data, index=index, page_size=page_size, total_count=len(data))

    def get_project_file(self, project_id: int, file_id: int) -> PackageFile:
        for file in self.files.get(project_id, []):
            if file.id == file_id:
                return file
        raise CatalogError(f"No file {file_id} in project {project_id}", status_code=404)

    def get_projects(self, project_ids: Sequence[int]) -> list[ProjectMetadata]:
        return [self.projects[pid] for pid in project_ids if pid in self.projects]

    def get_files(self, file_ids: Sequence[int]) -> list[PackageFile]:
        wanted = set(file_ids)
        return [f for files in self.files.values() for f in files if f.id in wanted]

    def search_projects(self, options: SearchOptions) -> list[ProjectMetadata]:
        needle = options.search_filter.lower()
        return [p for p in self.projects.values() if needle in p.name.lower()]

    @property
    def queried_projects(self) -> list[int]:
        return [project_id for project_id, _, _ in self.queries]


@pytest.fixture
def fake_catalog() -> FakeCatalog:
    """Empty in-memory catalog; tests add files with ``add()``."""
    return FakeCatalog()


class _DoneHandle:
    def __init__(self, future: Future[Path]) -> None:
        self._future = future
        self.cancelled = False

    @property
    def progress(self) -> tuple[int, int]:
        return (0, 0)

    def result(self, timeout: float | None = None) -> Path:
        return self._future.result(timeout)

    def cancel(self) -> None:
        self.cancelled = True

    def done(self) -> bool:
        return self._future.done()


class FakeScheduler:
    """TaskSchedulerPort that "downloads" by writing the first URL as content.

    URLs listed in ``broken`` fail; every attempted task is recorded.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.tasks: list[DownloadTask] = []
        self.broken: set[str] = set()
        self.delay = delay
        self._lock = threading.Lock()

    def submit(self, task: DownloadTask) -> _DoneHandle:
        with self._lock:
            self.tasks.append(task)
        future: Future[Path] = Future()
        if self.delay:
            time.sleep(self.delay)
        usable = [url for url in task.urls if url not in self.broken]
        if usable:
            task.destination.parent.mkdir(parents=True, exist_ok=True)
            task.destination.write_bytes(f"content of {usable[0]}".encode())
            if task.progress is not None:
                task.progress(10, 10)
            future.set_result(task.destination)
        else:
            from packstash.core.exceptions import DownloadVerificationError

            future.set_exception(
                DownloadVerificationError("all mirrors failed", name=task.name)
            )
        return _DoneHandle(future)

    @property
    def downloaded_urls(self) -> list[tuple[str, ...]]:
        return [task.urls for task in self.tasks]


@pytest.fixture
def fake_scheduler() -> FakeScheduler:
    """Scheduler completing every task synchronously."""
    return FakeScheduler()


@pytest.fixture
def slow_scheduler() -> FakeScheduler:
    """Scheduler taking 0.2s per task, so concurrent callers overlap."""
    return FakeScheduler(delay=0.2)


class RecordingListener:
    """InstallListener recording events in order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, int]] = []
        self._lock = threading.Lock()

    def download_start(self, file_id: int) -> None:
        with self._lock:
            self.events.append(("start", file_id))

    def download_end(self, file_id: int) -> None:
        with self._lock:
            self.events.append(("end", file_id))

    def count(self, kind: str, file_id: int) -> int:
        return self.events.count((kind, file_id))


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()
