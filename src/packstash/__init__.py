"""packstash - install game content packages with their dependency closure.

This library resolves a catalog file's transitive dependencies, downloads
every artifact from verified mirrors, deduplicates them in a local
content-addressed store and links them into a game instance.

Example:
    >>> from packstash import InstallCategory, InstallRequest, load_settings
    >>> from packstash import InstallationPipeline
    >>> with InstallationPipeline.from_settings(load_settings()) as pipeline:
    ...     file = pipeline.fetch_project_file(238222, 4712866)
    ...     result = pipeline.install_file(
    ...         InstallRequest(file=file, category=InstallCategory.MOD)
    ...     )
"""

from packstash.adapters.catalog import CurseForgeClient, DedupingCatalog
from packstash.adapters.executor import SynchronousExecutor, ThreadPoolExecutorAdapter
from packstash.adapters.scheduler import ThreadedTaskScheduler
from packstash.adapters.store import FileContentStore
from packstash.adapters.transport import (
    FilesystemTransport,
    HttpTransport,
    S3Transport,
    TransportRouter,
    create_router,
)
from packstash.config import Settings, find_project_root, load_settings
from packstash.core.cancellation import CancelToken
from packstash.core.exceptions import (
    CatalogError,
    ConfigurationError,
    ContractViolation,
    DownloadVerificationError,
    InstallCancelledError,
    InstallError,
    PackstashError,
    RootFetchError,
    StoreCorruptError,
    StoreWriteError,
    TransientFetchError,
    TransportError,
    TransportNotFoundError,
)
from packstash.core.models import (
    CachedResource,
    Category,
    InstallCategory,
    InstallRequest,
    InstallResult,
    LoaderType,
    PackageFile,
    ProjectMetadata,
    RelationKind,
    SearchOptions,
)
from packstash.core.ports import (
    CatalogPort,
    ContentStorePort,
    InstallListener,
    NullProgressReporter,
    ProgressCallback,
    ProgressReporter,
    TaskSchedulerPort,
    TransportPort,
)
from packstash.core.resolver import DependencyResolver
from packstash.core.services import InstallationPipeline
from packstash.core.tracking import InstallTracker
from packstash.progress import RichProgressReporter


__version__ = "0.1.0"

__all__ = [
    "CachedResource",
    "CancelToken",
    "CatalogError",
    "CatalogPort",
    "Category",
    "ConfigurationError",
    "ContentStorePort",
    "ContractViolation",
    "CurseForgeClient",
    "DedupingCatalog",
    "DependencyResolver",
    "DownloadVerificationError",
    "FileContentStore",
    "FilesystemTransport",
    "HttpTransport",
    "InstallCancelledError",
    "InstallCategory",
    "InstallError",
    "InstallListener",
    "InstallRequest",
    "InstallResult",
    "InstallTracker",
    "InstallationPipeline",
    "LoaderType",
    "NullProgressReporter",
    "PackageFile",
    "PackstashError",
    "ProgressCallback",
    "ProgressReporter",
    "ProjectMetadata",
    "RelationKind",
    "RichProgressReporter",
    "RootFetchError",
    "S3Transport",
    "SearchOptions",
    "Settings",
    "StoreCorruptError",
    "StoreWriteError",
    "SynchronousExecutor",
    "TaskSchedulerPort",
    "ThreadPoolExecutorAdapter",
    "ThreadedTaskScheduler",
    "TransientFetchError",
    "TransportError",
    "TransportNotFoundError",
    "TransportPort",
    "TransportRouter",
    "__version__",
    "create_router",
    "find_project_root",
    "load_settings",
]
