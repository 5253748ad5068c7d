"""Core domain module for packstash.

This module contains pure Python domain models, port definitions and the
install orchestration. It performs no I/O of its own: every network and
filesystem access goes through a port.
"""

from packstash.core.models import (
    CachedResource,
    InstallCategory,
    InstallRequest,
    InstallResult,
    PackageFile,
    ProjectMetadata,
)
from packstash.core.ports import (
    CatalogPort,
    ContentStorePort,
    ProgressCallback,
    TaskSchedulerPort,
    TransportPort,
)


__all__ = [
    "CachedResource",
    "CatalogPort",
    "ContentStorePort",
    "InstallCategory",
    "InstallRequest",
    "InstallResult",
    "PackageFile",
    "ProgressCallback",
    "ProjectMetadata",
    "TaskSchedulerPort",
    "TransportPort",
]
