"""Content-addressed file store implementing ContentStorePort."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import shutil
import tempfile
import threading
from collections.abc import Mapping, Sequence
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any

from packstash.core.checksums import hash_file
from packstash.core.exceptions import StoreCorruptError, StoreWriteError
from packstash.core.models import CachedResource, ResourceDomain


logger = logging.getLogger(__name__)

_META_SUFFIX = ".meta.json"


class FileContentStore:
    """Local content store with JSON metadata sidecars.

    Blobs are named by their SHA-1 and stored at
    ``objects/<sha1[:2]>/<sha1>`` next to a ``<sha1>.meta.json`` sidecar
    holding the identity URIs and origin metadata. The identity index
    (URI to SHA-1) is rebuilt from sidecars on first use.

    Imports are serialized under one lock and re-check identity inside it,
    so concurrent imports of the same file leave a single stored copy.

    Attributes:
        store_dir: Root directory of the store.
    """

    def __init__(self, store_dir: Path) -> None:
        """Initialize the store with a directory path.

        Args:
            store_dir: Directory where blobs and sidecars are stored.
        """
        self.store_dir = store_dir
        self._lock = threading.RLock()
        self._index: dict[str, str] | None = None

    @property
    def objects_dir(self) -> Path:
        return self.store_dir / "objects"

    def _blob_path(self, sha1: str) -> Path:
        """Get the path of a stored blob."""
        return self.objects_dir / sha1[:2] / sha1

    def _meta_path(self, sha1: str) -> Path:
        """Get the path of a blob's metadata sidecar."""
        return self.objects_dir / sha1[:2] / f"{sha1}{_META_SUFFIX}"

    # Lookup

    def get_one(self, identity_uris: frozenset[str]) -> CachedResource | None:
        """Get the resource named by any of the identity URIs, or None.

        Raises:
            StoreCorruptError: If the matching sidecar is unreadable.
        """
        with self._lock:
            return self._lookup(identity_uris)

    def _lookup(self, identity_uris: frozenset[str]) -> CachedResource | None:
        index = self._ensure_index()
        for uri in sorted(identity_uris):
            sha1 = index.get(uri)
            if sha1 is not None and self._blob_path(sha1).is_file():
                return self._read(sha1)
        return None

    def _ensure_index(self) -> dict[str, str]:
        if self._index is None:
            index: dict[str, str] = {}
            for resource in self._scan():
                for uri in resource.identity_uris:
                    index[uri] = resource.sha1
            self._index = index
            logger.debug("Loaded store index: %d identities", len(index))
        return self._index

    def _scan(self) -> list[CachedResource]:
        if not self.objects_dir.exists():
            return []
        resources = []
        for meta_path in sorted(self.objects_dir.glob(f"*/*{_META_SUFFIX}")):
            sha1 = meta_path.name[: -len(_META_SUFFIX)]
            resources.append(self._read(sha1))
        return resources

    def _read(self, sha1: str) -> CachedResource:
        meta_path = self._meta_path(sha1)
        try:
            with meta_path.open() as f:
                data = json.load(f)
            return CachedResource(
                identity_uris=frozenset(data["identity_uris"]),
                path=self._blob_path(sha1),
                domain=ResourceDomain(data.get("domain", "unclassified")),
                file_name=data["file_name"],
                sha1=sha1,
                metadata=data.get("metadata", {}),
                tags=tuple(data.get("tags", [])),
                icons=tuple(data.get("icons", [])),
                imported_at=datetime.fromisoformat(data["imported_at"]),
            )
        except (OSError, KeyError, ValueError) as e:
            raise StoreCorruptError(
                f"Store metadata corrupt for '{sha1}'",
                key=sha1,
                path=meta_path,
                cause=e,
            ) from e

    # Import

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

        If a resource with any of the URIs already exists it is returned
        unchanged. If the same content is stored under other URIs, the new
        URIs are added to that record.

        Raises:
            StoreWriteError: If the file cannot be read or written.
        """
        try:
            sha1 = hash_file(source_path)
        except OSError as e:
            raise StoreWriteError(
                f"Cannot read {source_path}", path=source_path, cause=e
            ) from e

        with self._lock:
            existing = self._lookup(identity_uris)
            if existing is not None:
                return existing

            blob_path = self._blob_path(sha1)
            try:
                if blob_path.is_file() and self._meta_path(sha1).is_file():
                    current = self._read(sha1)
                    resource = replace(
                        current,
                        identity_uris=current.identity_uris | identity_uris,
                        tags=tuple(dict.fromkeys([*current.tags, *tags])),
                    )
                    logger.info("Content of %s already stored as %s", file_name, sha1)
                else:
                    blob_path.parent.mkdir(parents=True, exist_ok=True)
                    self._copy_atomic(source_path, blob_path)
                    resource = CachedResource(
                        identity_uris=frozenset(identity_uris),
                        path=blob_path,
                        domain=ResourceDomain(domain),
                        file_name=file_name,
                        sha1=sha1,
                        metadata=dict(metadata or {}),
                        tags=tuple(tags),
                        icons=tuple(icons),
                    )
                self._write_meta(resource)
            except OSError as e:
                raise StoreWriteError(
                    f"Failed to import {file_name} into the store", path=blob_path, cause=e
                ) from e

            index = self._ensure_index()
            for uri in resource.identity_uris:
                index[uri] = sha1
            return resource

    def _copy_atomic(self, source: Path, dest: Path) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.")
        os.close(fd)
        tmp_path = Path(tmp_name)
        try:
            shutil.copyfile(source, tmp_path)
            os.replace(tmp_path, dest)
        finally:
            tmp_path.unlink(missing_ok=True)

    def _write_meta(self, resource: CachedResource) -> None:
        meta_path = self._meta_path(resource.sha1)
        data = {
            "identity_uris": sorted(resource.identity_uris),
            "domain": resource.domain.value,
            "file_name": resource.file_name,
            "metadata": dict(resource.metadata),
            "tags": list(resource.tags),
            "icons": list(resource.icons),
            "imported_at": resource.imported_at.isoformat(),
        }
        tmp_path = meta_path.with_name(f".{meta_path.name}.tmp")
        with tmp_path.open("w") as f:
            json.dump(data, f)
        os.replace(tmp_path, meta_path)

    # Workspace linking

    def install(self, workspace_path: Path, resource: CachedResource) -> Path:
        """Hard-link a resource into ``<workspace>/<domain>/<file_name>``.

        Falls back to copying when linking is not possible (for example
        across filesystems). An existing file at the target is replaced.

        Raises:
            StoreWriteError: If the file cannot be linked or copied.
        """
        target = workspace_path / resource.domain.value / resource.file_name
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if target.exists():
                if target.samefile(resource.path):
                    return target
                target.unlink()
            try:
                os.link(resource.path, target)
            except OSError:
                shutil.copy2(resource.path, target)
        except OSError as e:
            raise StoreWriteError(
                f"Failed to install {resource.file_name} into {workspace_path}",
                path=target,
                cause=e,
            ) from e
        logger.info("Linked %s into %s", resource.file_name, target.parent)
        return target

    # Inspection

    def list_resources(self) -> list[CachedResource]:
        """All stored resources, oldest import first."""
        with self._lock:
            return sorted(self._scan(), key=lambda r: r.imported_at)

    def statistics(self) -> dict[str, int]:
        """Get store statistics.

        Returns:
            Dictionary with 'total_size' (bytes of blobs and sidecars) and
            'resource_count' (number of stored blobs).
        """
        total_size = 0
        resource_count = 0

        if not self.objects_dir.exists():
            return {"total_size": 0, "resource_count": 0}

        for file_path in self.objects_dir.rglob("*"):
            if file_path.is_file():
                with contextlib.suppress(OSError):
                    total_size += file_path.stat().st_size
                    if not file_path.name.endswith(_META_SUFFIX):
                        resource_count += 1

        return {"total_size": total_size, "resource_count": resource_count}
