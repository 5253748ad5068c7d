"""Catalog decorator that collapses concurrent identical queries."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from packstash.core.inflight import SingleFlight


if TYPE_CHECKING:
    from packstash.core.models import (
        Category,
        FilePage,
        LoaderType,
        PackageFile,
        ProjectMetadata,
        SearchOptions,
    )
    from packstash.core.ports import CatalogPort


class DedupingCatalog:
    """CatalogPort wrapper sharing one in-flight call per distinct query.

    Parallel dependency branches often ask for the same project at the same
    moment; only one request goes out and every caller gets its result.
    Nothing is cached once the call completes.
    """

    def __init__(self, inner: CatalogPort) -> None:
        self._inner = inner
        self._flight: SingleFlight[Any] = SingleFlight()

    @property
    def inner(self) -> CatalogPort:
        """The wrapped catalog."""
        return self._inner

    def get_categories(self) -> list[Category]:
        return self._flight.do(("categories",), self._inner.get_categories)

    def get_project(self, project_id: int) -> ProjectMetadata:
        return self._flight.do(
            ("project", project_id), lambda: self._inner.get_project(project_id)
        )

    def get_project_description(self, project_id: int) -> str:
        return self._flight.do(
            ("description", project_id),
            lambda: self._inner.get_project_description(project_id),
        )

    def get_project_files(
        self,
        project_id: int,
        *,
        game_version: str | None = None,
        loader_type: LoaderType | None = None,
        page_size: int = 50,
        index: int = 0,
    ) -> FilePage:
        key = ("files", project_id, game_version, loader_type, page_size, index)
        return self._flight.do(
            key,
            lambda: self._inner.get_project_files(
                project_id,
                game_version=game_version,
                loader_type=loader_type,
                page_size=page_size,
                index=index,
            ),
        )

    def get_project_file(self, project_id: int, file_id: int) -> PackageFile:
        return self._flight.do(
            ("file", project_id, file_id),
            lambda: self._inner.get_project_file(project_id, file_id),
        )

    def get_projects(self, project_ids: Sequence[int]) -> list[ProjectMetadata]:
        ids = tuple(project_ids)
        return self._flight.do(("projects", ids), lambda: self._inner.get_projects(ids))

    def get_files(self, file_ids: Sequence[int]) -> list[PackageFile]:
        ids = tuple(file_ids)
        return self._flight.do(("files-by-id", ids), lambda: self._inner.get_files(ids))

    def search_projects(self, options: SearchOptions) -> list[ProjectMetadata]:
        return self._flight.do(
            ("search", options), lambda: self._inner.search_projects(options)
        )

    def close(self) -> None:
        """Close the wrapped catalog if it holds connections."""
        close = getattr(self._inner, "close", None)
        if close is not None:
            close()
