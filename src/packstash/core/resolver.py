"""Transitive dependency resolution over the catalog."""

from __future__ import annotations

import logging
import threading
from collections.abc import Collection
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from packstash.core.cancellation import CancelToken
from packstash.core.exceptions import (
    ContractViolation,
    InstallCancelledError,
    TransientFetchError,
)
from packstash.core.fanout import gather
from packstash.core.models import (
    DependencyEdge,
    LoaderType,
    PackageFile,
    RelationKind,
)


if TYPE_CHECKING:
    from packstash.core.models import FilePage
    from packstash.core.ports import CatalogPort, ExecutorPort


logger = logging.getLogger(__name__)


@dataclass
class TraversalContext:
    """State of one resolve_dependencies() call, threaded through recursion.

    Attributes:
        cancel_token: Cancellation shared with the surrounding install.
        depth: Distance of the file being visited from the root.
        visited: Project ids already claimed by this call.
    """

    cancel_token: CancelToken = field(default_factory=CancelToken)
    depth: int = 0
    visited: set[int] = field(default_factory=set)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def claim(self, project_id: int) -> bool:
        """Mark project_id visited. Returns False if it already was."""
        with self._lock:
            if project_id in self.visited:
                return False
            self.visited.add(project_id)
            return True

    def deeper(self) -> TraversalContext:
        """Context for the next level; shares the visited set and token."""
        return TraversalContext(
            cancel_token=self.cancel_token,
            depth=self.depth + 1,
            visited=self.visited,
            _lock=self._lock,
        )


def query_constraints(file: PackageFile) -> tuple[str, LoaderType]:
    """Derive the catalog query filters from a file's own compatibility tags.

    Returns:
        The first explicit game version (empty if none) and the loader
        named by the last loader tag (ANY if none).
    """
    game_version = ""
    loader = LoaderType.ANY
    for tag in file.game_versions:
        if tag.game_version:
            if not game_version:
                game_version = tag.game_version
            continue
        named = LoaderType.from_tag_name(tag.game_version_name)
        if named is not None:
            loader = named
    return game_version, loader


class DependencyResolver:
    """Walks cascading dependency edges and returns the flattened closure.

    Catalog failures on an edge are logged and the edge is dropped; they
    never propagate past the resolver.
    """

    def __init__(
        self,
        catalog: CatalogPort,
        executor: ExecutorPort | None = None,
        relations: Collection[RelationKind] | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            catalog: Catalog to query for dependency files.
            executor: Executor for resolving sibling edges concurrently.
                None resolves sequentially.
            relations: Relation kinds that are resolved transitively.
                None follows each file's cascading dependencies.
        """
        self._catalog = catalog
        self._executor = executor
        self._relations = frozenset(relations) if relations is not None else None

    def resolve_dependencies(
        self,
        file: PackageFile,
        *,
        cancel_token: CancelToken | None = None,
    ) -> list[PackageFile]:
        """Resolve the transitive dependency closure of a file.

        Args:
            file: The file whose dependencies to resolve.
            cancel_token: Optional cancellation shared with the caller.

        Returns:
            Dependency files in discovery order (per edge, then depth first),
            one per project, excluding the file's own project.

        Raises:
            ContractViolation: If file is not a PackageFile.
            InstallCancelledError: If the token is cancelled.
        """
        if not isinstance(file, PackageFile):
            raise ContractViolation("resolve_dependencies() requires a PackageFile")

        context = TraversalContext(cancel_token=cancel_token or CancelToken())
        context.claim(file.project_id)
        closure = self._visit(file, context)

        seen: set[int] = set()
        ordered: list[PackageFile] = []
        for dependency in closure:
            if dependency.project_id in seen:
                continue
            seen.add(dependency.project_id)
            ordered.append(dependency)
        return ordered

    def _visit(self, file: PackageFile, context: TraversalContext) -> list[PackageFile]:
        edges = [
            edge
            for edge in self._edges_of(file)
            if context.claim(edge.project_id)
        ]
        if not edges:
            return []

        game_version, loader = query_constraints(file)
        child_context = context.deeper()

        def resolve_edge(edge: DependencyEdge) -> list[PackageFile]:
            return self._resolve_edge(file, edge, game_version, loader, child_context)

        branches = gather(self._executor, resolve_edge, edges)
        return [dependency for branch in branches for dependency in branch]

    def _edges_of(self, file: PackageFile) -> tuple[DependencyEdge, ...]:
        if self._relations is None:
            return file.cascading_dependencies
        return tuple(d for d in file.dependencies if d.relation in self._relations)

    def _resolve_edge(
        self,
        parent: PackageFile,
        edge: DependencyEdge,
        game_version: str,
        loader: LoaderType,
        context: TraversalContext,
    ) -> list[PackageFile]:
        context.cancel_token.raise_if_cancelled()
        try:
            page = self._lookup(edge.project_id, game_version, loader)
        except TransientFetchError as e:
            logger.warning(
                "Skip dependency %s of file %s:%s: %s",
                edge.project_id,
                parent.project_id,
                parent.id,
                e,
            )
            return []

        if not page.data:
            logger.warning(
                "Skip dependency %s of file %s:%s: no file matched %s/%s",
                edge.project_id,
                parent.project_id,
                parent.id,
                game_version or "any version",
                loader.name.lower(),
            )
            return []

        match = page.data[0]
        logger.debug(
            "Resolved dependency %s -> file %s at depth %d",
            edge.project_id,
            match.id,
            context.depth,
        )
        return [match, *self._visit(match, context)]

    def _lookup(self, project_id: int, game_version: str, loader: LoaderType) -> FilePage:
        """Query the best matching file of a project.

        Raises:
            TransientFetchError: If the catalog lookup failed for any reason.
            InstallCancelledError: If the install was cancelled meanwhile.
        """
        try:
            return self._catalog.get_project_files(
                project_id,
                game_version=game_version or None,
                loader_type=loader,
                page_size=1,
            )
        except InstallCancelledError:
            raise
        except Exception as e:
            raise TransientFetchError(
                f"catalog lookup failed: {e}",
                endpoint=f"/v1/mods/{project_id}/files",
                status_code=getattr(e, "status_code", None),
                cause=e,
            ) from e
