"""Core domain services for packstash."""

from __future__ import annotations

import dataclasses
import logging
import uuid
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from packstash.core.cancellation import CancelToken
from packstash.core.downloads import DownloadOrchestrator, download_urls_for
from packstash.core.exceptions import (
    ContractViolation,
    InstallCancelledError,
    InstallError,
    RootFetchError,
)
from packstash.core.fanout import gather
from packstash.core.inflight import SingleFlight
from packstash.core.models import (
    CachedResource,
    InstallCategory,
    InstallRequest,
    InstallResult,
    InstallState,
    LoaderType,
    PackageFile,
    ProjectMetadata,
    ResourceDomain,
    domain_for,
)
from packstash.core.ports import NullProgressReporter
from packstash.core.resolver import DependencyResolver
from packstash.core.tracking import InstallRun, InstallTracker


if TYPE_CHECKING:
    from packstash.config import Settings
    from packstash.core.models import Category, FilePage, SearchOptions
    from packstash.core.ports import (
        CatalogPort,
        ContentStorePort,
        ExecutorPort,
        InstallListener,
        ProgressReporter,
        TaskSchedulerPort,
    )


logger = logging.getLogger(__name__)


def identity_uris(file: PackageFile) -> frozenset[str]:
    """The content store identity of a file.

    A synthetic origin URI plus every URL the file can be downloaded from.

    Raises:
        RootFetchError: If the file does not name its project.
    """
    if file.project_id <= 0:
        raise RootFetchError(f"File {file.id} does not belong to a known project")
    return frozenset([f"curseforge:{file.project_id}:{file.id}", *download_urls_for(file)])


def loader_tags(file: PackageFile) -> tuple[str, ...]:
    """Lower-case loader names declared by a file's compatibility tags."""
    tags = []
    for tag in file.game_versions:
        loader = LoaderType.from_tag_name(tag.game_version_name)
        if loader is not None and loader.name.lower() not in tags:
            tags.append(loader.name.lower())
    return tuple(tags)


class InstallationPipeline:
    """Installs catalog files with their dependencies into the content store.

    Composes the catalog, the dependency resolver, the download orchestrator
    and the content store. Dependency branches and the project metadata
    fetch run concurrently on the injected executor; a failing dependency
    is logged and left out of the result instead of failing the install.
    """

    def __init__(
        self,
        catalog: CatalogPort,
        store: ContentStorePort,
        scheduler: TaskSchedulerPort,
        *,
        temp_dir: Path,
        executor: ExecutorPort | None = None,
        tracker: InstallTracker | None = None,
        progress: ProgressReporter | None = None,
        retries: int = 3,
    ) -> None:
        """Initialize the pipeline.

        Args:
            catalog: Catalog to query for projects and files.
            store: Content store holding installed artifacts.
            scheduler: Scheduler running download tasks.
            temp_dir: Directory for downloads awaiting import.
            executor: Executor for concurrent branches. None is sequential.
            tracker: Tracker receiving start/end events. A fresh one if None.
            progress: Reporter for download progress.
            retries: Download attempts per mirror.
        """
        self._catalog = catalog
        self._store = store
        self._temp_dir = temp_dir
        self._executor = executor
        self._tracker = tracker or InstallTracker()
        self._progress = progress or NullProgressReporter()
        self._resolver = DependencyResolver(catalog, executor)
        self._downloads = DownloadOrchestrator(scheduler, retries=retries)
        self._acquisitions: SingleFlight[CachedResource] = SingleFlight()
        self._closers: list[Callable[[], None]] = []

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        progress: ProgressReporter | None = None,
        listeners: Sequence[InstallListener] = (),
    ) -> InstallationPipeline:
        """Create a pipeline with the default adapters for the given settings.

        Args:
            settings: Loaded configuration.
            progress: Optional progress reporter for downloads.
            listeners: Listeners for install start/end events.

        Returns:
            Pipeline using the CurseForge client, the file content store,
            the transport router and thread pools sized by settings.
        """
        from packstash.adapters.catalog import CurseForgeClient, DedupingCatalog
        from packstash.adapters.executor import ThreadPoolExecutorAdapter
        from packstash.adapters.scheduler import ThreadedTaskScheduler
        from packstash.adapters.store import FileContentStore
        from packstash.adapters.transport import create_router

        client = CurseForgeClient(
            api_key=settings.api_key,
            base_url=settings.api_base_url,
            timeout=settings.timeout,
            retries=settings.retries,
        )
        executor = ThreadPoolExecutorAdapter(max_workers=settings.max_workers)
        download_executor = ThreadPoolExecutorAdapter(
            max_workers=settings.max_downloads, thread_name_prefix="packstash-download"
        )
        router = create_router(timeout=settings.timeout)
        pipeline = cls(
            catalog=DedupingCatalog(client),
            store=FileContentStore(settings.store_dir),
            scheduler=ThreadedTaskScheduler(router, download_executor),
            temp_dir=settings.temp_dir,
            executor=executor,
            tracker=InstallTracker(listeners),
            progress=progress,
            retries=settings.retries,
        )
        pipeline._closers.extend(
            [executor.shutdown, download_executor.shutdown, router.close, client.close]
        )
        return pipeline

    def close(self) -> None:
        """Release executors and clients created by from_settings()."""
        while self._closers:
            self._closers.pop()()

    def __enter__(self) -> InstallationPipeline:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    @property
    def tracker(self) -> InstallTracker:
        """Tracker of installs in progress."""
        return self._tracker

    # Catalog queries

    def fetch_categories(self) -> list[Category]:
        """List the catalog's categories."""
        logger.info("Fetch categories")
        return self._catalog.get_categories()

    def fetch_project(self, project_id: int) -> ProjectMetadata:
        """Get a project's metadata."""
        logger.info("Fetch project: %s", project_id)
        return self._catalog.get_project(project_id)

    def fetch_project_description(self, project_id: int) -> str:
        """Get a project's long description."""
        logger.info("Fetch project description: %s", project_id)
        return self._catalog.get_project_description(project_id)

    def fetch_project_files(
        self,
        project_id: int,
        *,
        game_version: str | None = None,
        loader_type: LoaderType | None = None,
        page_size: int = 50,
        index: int = 0,
    ) -> FilePage:
        """List a project's files."""
        logger.info("Fetch project files: %s", project_id)
        return self._catalog.get_project_files(
            project_id,
            game_version=game_version,
            loader_type=loader_type,
            page_size=page_size,
            index=index,
        )

    def fetch_project_file(self, project_id: int, file_id: int) -> PackageFile:
        """Get a single file of a project."""
        logger.info("Fetch project file: %s-%s", project_id, file_id)
        return self._catalog.get_project_file(project_id, file_id)

    def fetch_projects(self, project_ids: Sequence[int]) -> list[ProjectMetadata]:
        """Get several projects at once."""
        logger.info("Fetch %d projects", len(project_ids))
        return self._catalog.get_projects(project_ids)

    def fetch_files(self, file_ids: Sequence[int]) -> list[PackageFile]:
        """Get several files at once."""
        logger.info("Fetch %d files", len(file_ids))
        return self._catalog.get_files(file_ids)

    def search_projects(self, options: SearchOptions) -> list[ProjectMetadata]:
        """Search the catalog."""
        logger.info("Search projects: %s", options)
        return self._catalog.search_projects(options)

    def resolve_file_dependencies(
        self,
        file: PackageFile,
        *,
        cancel_token: CancelToken | None = None,
    ) -> list[PackageFile]:
        """Resolve the flattened transitive dependency closure of a file."""
        return self._resolver.resolve_dependencies(file, cancel_token=cancel_token)

    # Installation

    def install_file(
        self,
        request: InstallRequest,
        *,
        cancel_token: CancelToken | None = None,
    ) -> InstallResult:
        """Install a file and, for bundles, its dependency closure.

        Args:
            request: What to install and where.
            cancel_token: Cancels this install and every dependency branch.

        Returns:
            The result tree. Dependencies that failed to install are absent.

        Raises:
            ContractViolation: If the request is malformed.
            InstallCancelledError: If the token was cancelled.
            InstallError: If the file itself could not be installed.
        """
        request = self._validate(request)
        token = cancel_token or CancelToken()
        file = request.file
        try:
            return self._install(request, token)
        except (ContractViolation, InstallCancelledError):
            raise
        except Exception as e:
            logger.error("Failed to install %s (%s): %s", file.display_name, file.id, e)
            raise InstallError(file.id, file.display_name, cause=e) from e

    def _validate(self, request: InstallRequest) -> InstallRequest:
        if not isinstance(request, InstallRequest):
            raise ContractViolation("install_file() requires an InstallRequest")
        if not isinstance(request.file, PackageFile):
            raise ContractViolation("InstallRequest.file must be a PackageFile")
        try:
            category = InstallCategory(request.category)
        except ValueError:
            raise ContractViolation(
                f"Unknown install category: {request.category!r}"
            ) from None
        if category is not request.category:
            request = dataclasses.replace(request, category=category)
        return request

    def _install(self, request: InstallRequest, token: CancelToken) -> InstallResult:
        file = request.file
        uris = identity_uris(file)
        logger.info(
            "Try install file %s (%s) in type %s",
            file.display_name,
            file.download_url or "no direct url",
            request.category.value,
        )
        with self._tracker.track(file.id) as run:
            token.raise_if_cancelled()
            steps: list[Callable[[], object]] = [
                lambda: self._fetch_project_quietly(file, token),
                lambda: self._install_dependencies(request, token),
            ]
            project, dependencies = gather(self._executor, lambda step: step(), steps)
            assert project is None or isinstance(project, ProjectMetadata)
            assert isinstance(dependencies, list)

            token.raise_if_cancelled()
            run.advance(InstallState.DOWNLOADING)
            resource = self._acquire(request, uris, project, token, run)
            if run.state is InstallState.DOWNLOADING:
                run.advance(InstallState.IMPORTING)

            token.raise_if_cancelled()
            run.advance(InstallState.LINKING)
            self._link(request, resource)

            return InstallResult(
                file=file,
                project=project,
                resource=resource,
                dependencies=tuple(dependencies),
            )

    def _fetch_project_quietly(
        self, file: PackageFile, token: CancelToken
    ) -> ProjectMetadata | None:
        token.raise_if_cancelled()
        try:
            return self.fetch_project(file.project_id)
        except InstallCancelledError:
            raise
        except Exception as e:
            logger.warning(
                "Fail to fetch project %s of file %s, continue without icon: %s",
                file.project_id,
                file.id,
                e,
            )
            return None

    def _install_dependencies(
        self, request: InstallRequest, token: CancelToken
    ) -> list[InstallResult]:
        if request.ignore_dependencies or request.category is not InstallCategory.BUNDLE:
            return []

        files = self._resolver.resolve_dependencies(request.file, cancel_token=token)
        if not files:
            return []
        logger.info(
            "Install %d dependencies of %s", len(files), request.file.display_name
        )
        results = gather(
            self._executor,
            lambda dep: self._install_dependency(request, dep, token),
            files,
        )
        return [result for result in results if result is not None]

    def _install_dependency(
        self, parent: InstallRequest, file: PackageFile, token: CancelToken
    ) -> InstallResult | None:
        try:
            return self._install(parent.for_dependency(file), token)
        except InstallCancelledError:
            raise
        except Exception as e:
            logger.warning(
                "Skip dependency %s (%s) of %s: %s",
                file.display_name,
                file.id,
                parent.file.display_name,
                e,
            )
            return None

    def _acquire(
        self,
        request: InstallRequest,
        uris: frozenset[str],
        project: ProjectMetadata | None,
        token: CancelToken,
        run: InstallRun,
    ) -> CachedResource:
        cached = self._store.get_one(uris)
        if cached is not None:
            logger.info("The file %s existed in cache", request.file.display_name)
            return cached
        while True:
            try:
                return self._acquisitions.do(
                    uris,
                    lambda: self._download_and_import(request, uris, project, token, run),
                    cancel_token=token,
                )
            except InstallCancelledError:
                if token.cancelled:
                    raise
                # The shared download belonged to an install that was cancelled
                logger.info(
                    "Shared download of %s was cancelled elsewhere, download again",
                    request.file.display_name,
                )

    def _download_and_import(
        self,
        request: InstallRequest,
        uris: frozenset[str],
        project: ProjectMetadata | None,
        token: CancelToken,
        run: InstallRun,
    ) -> CachedResource:
        file = request.file
        # An equivalent install may have finished between lookup and leadership
        cached = self._store.get_one(uris)
        if cached is not None:
            return cached

        self._temp_dir.mkdir(parents=True, exist_ok=True)
        destination = self._temp_dir / f"{uuid.uuid4().hex}-{file.file_name}"
        try:
            callback = self._progress.start_task(file.display_name, file.file_length)
            try:
                self._downloads.fetch_artifact(
                    download_urls_for(file),
                    destination,
                    file.checksum,
                    name=file.display_name,
                    progress=callback,
                    cancel_token=token,
                )
            finally:
                self._progress.finish_task(file.display_name)

            run.advance(InstallState.IMPORTING)
            token.raise_if_cancelled()
            resource = self._store.import_resource(
                destination,
                uris,
                domain=domain_for(request.category),
                file_name=file.file_name,
                metadata={"curseforge": {"projectId": file.project_id, "fileId": file.id}},
                icons=[project.thumbnail_url] if project and project.thumbnail_url else [],
                tags=loader_tags(file),
            )
        finally:
            destination.unlink(missing_ok=True)

        logger.info("Install file %s success", file.display_name)
        return resource

    def _link(self, request: InstallRequest, resource: CachedResource) -> None:
        workspace = request.workspace_path
        if workspace is None or resource.domain is ResourceDomain.MODPACKS:
            return
        try:
            self._store.install(workspace, resource)
        except Exception as e:
            logger.warning(
                "Fail to link %s into %s: %s", resource.file_name, workspace, e
            )
