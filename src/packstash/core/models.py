"""Core domain models for packstash.

These models are pure Python dataclasses with no I/O dependencies.
They represent catalog files and projects, install requests and results,
and the records kept by the content store. Catalog JSON is parsed by the
``from_api`` constructors next to each model.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any, Self


ProgressCallback = Callable[[int, int], None]

# CurseForge encodes the hash algorithm as an integer
_HASH_ALGORITHMS = {1: "sha1", 2: "md5"}
_SUPPORTED_ALGORITHMS = frozenset({"sha1", "md5", "sha256", "sha512"})


class RelationKind(IntEnum):
    """Classification of a dependency edge, numbered as in the catalog."""

    EMBEDDED_LIBRARY = 1
    OPTIONAL_DEPENDENCY = 2
    REQUIRED_DEPENDENCY = 3
    TOOL = 4
    INCOMPATIBLE = 5
    INCLUDE = 6

    @property
    def cascades(self) -> bool:
        """Whether edges of this kind are resolved transitively."""
        return self in CASCADING_RELATIONS


CASCADING_RELATIONS = frozenset(
    {
        RelationKind.EMBEDDED_LIBRARY,
        RelationKind.OPTIONAL_DEPENDENCY,
        RelationKind.REQUIRED_DEPENDENCY,
        RelationKind.TOOL,
    }
)


class LoaderType(IntEnum):
    """Mod loader filter understood by the catalog file query."""

    ANY = 0
    FORGE = 1
    CAULDRON = 2
    LITELOADER = 3
    FABRIC = 4
    QUILT = 5
    NEOFORGE = 6

    @classmethod
    def from_tag_name(cls, name: str) -> LoaderType | None:
        """Map a named compatibility tag ("Forge", "Fabric", ...) to a loader.

        Returns None when the tag does not name a loader.
        """
        return _LOADER_TAGS.get(name)


_LOADER_TAGS = {
    "Forge": LoaderType.FORGE,
    "Fabric": LoaderType.FABRIC,
    "Quilt": LoaderType.QUILT,
    "LiteLoader": LoaderType.LITELOADER,
    "NeoForge": LoaderType.NEOFORGE,
}


class InstallCategory(str, Enum):
    """Target category of an install, using the catalog's class slugs."""

    MOD = "mc-mods"
    RESOURCE_PACK = "texture-packs"
    WORLD = "worlds"
    BUNDLE = "modpacks"


class ResourceDomain(str, Enum):
    """Content store domain; also the workspace sub-directory name."""

    MODS = "mods"
    RESOURCE_PACKS = "resourcepacks"
    SAVES = "saves"
    MODPACKS = "modpacks"
    UNCLASSIFIED = "unclassified"


_CATEGORY_DOMAINS = {
    InstallCategory.MOD: ResourceDomain.MODS,
    InstallCategory.RESOURCE_PACK: ResourceDomain.RESOURCE_PACKS,
    InstallCategory.WORLD: ResourceDomain.SAVES,
    InstallCategory.BUNDLE: ResourceDomain.MODPACKS,
}


def domain_for(category: object) -> ResourceDomain:
    """Map an install category to its store domain.

    Anything outside the fixed table maps to UNCLASSIFIED.
    """
    try:
        return _CATEGORY_DOMAINS.get(InstallCategory(category), ResourceDomain.UNCLASSIFIED)
    except ValueError:
        return ResourceDomain.UNCLASSIFIED


class InstallState(Enum):
    """Lifecycle of a single file install."""

    IDLE = "idle"
    RESOLVING = "resolving"
    DOWNLOADING = "downloading"
    IMPORTING = "importing"
    LINKING = "linking"
    DONE = "done"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        """Whether no further transition is possible."""
        return self in (InstallState.DONE, InstallState.FAILED)


@dataclass(frozen=True, slots=True)
class FileHash:
    """A declared checksum of a file.

    Attributes:
        algorithm: Hash algorithm name understood by hashlib.
        value: Lower-case hexadecimal digest.
    """

    algorithm: str
    value: str

    def __post_init__(self) -> None:
        """Validate the algorithm."""
        if self.algorithm not in _SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported checksum algorithm '{self.algorithm}'")

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> FileHash | None:
        """Parse a catalog hash entry, or None for unknown algorithms."""
        algorithm = _HASH_ALGORITHMS.get(data.get("algo", 0))
        value = data.get("value")
        if algorithm is None or not value:
            return None
        return cls(algorithm=algorithm, value=str(value).lower())


@dataclass(frozen=True, slots=True)
class GameVersionTag:
    """A compatibility tag of a file.

    Either an explicit game version ("1.20.1") or a named tag such as a
    loader ("Forge") with an empty ``game_version``.
    """

    game_version: str = ""
    game_version_name: str = ""

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            game_version=data.get("gameVersion") or "",
            game_version_name=data.get("gameVersionName") or "",
        )


@dataclass(frozen=True, slots=True)
class DependencyEdge:
    """A declared dependency of a file on another project."""

    project_id: int
    relation: RelationKind

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            project_id=int(data["modId"]),
            relation=RelationKind(int(data["relationType"])),
        )


@dataclass(frozen=True, slots=True)
class PackageFile:
    """One downloadable artifact version of a project.

    Attributes:
        id: Catalog file id.
        project_id: Id of the owning project.
        display_name: Human readable name.
        file_name: Name of the artifact on disk.
        download_url: Direct download URL, when the catalog exposes one.
        hashes: Declared checksums.
        dependencies: Declared dependency edges.
        game_versions: Game version and loader compatibility tags.
        file_length: Size in bytes (0 if unknown).
    """

    id: int
    project_id: int
    display_name: str
    file_name: str
    download_url: str | None = None
    hashes: tuple[FileHash, ...] = ()
    dependencies: tuple[DependencyEdge, ...] = ()
    game_versions: tuple[GameVersionTag, ...] = ()
    file_length: int = 0

    def __post_init__(self) -> None:
        """Validate file fields after initialization."""
        if not self.file_name:
            raise ValueError("PackageFile file_name cannot be empty")

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> Self:
        """Build a PackageFile from a catalog file object."""
        hashes = tuple(
            h for h in (FileHash.from_api(raw) for raw in data.get("hashes", [])) if h
        )
        dependencies = []
        for raw in data.get("dependencies", []):
            try:
                dependencies.append(DependencyEdge.from_api(raw))
            except (KeyError, ValueError):
                # Relation kinds unknown to us cannot cascade
                continue
        return cls(
            id=int(data["id"]),
            project_id=int(data.get("modId", 0)),
            display_name=data.get("displayName") or data["fileName"],
            file_name=data["fileName"],
            download_url=data.get("downloadUrl") or None,
            hashes=hashes,
            dependencies=tuple(dependencies),
            game_versions=tuple(
                GameVersionTag.from_api(v) for v in data.get("sortableGameVersions", [])
            ),
            file_length=int(data.get("fileLength") or 0),
        )

    @property
    def checksum(self) -> FileHash | None:
        """The strongest declared checksum, used to verify downloads."""
        by_algorithm = {h.algorithm: h for h in self.hashes}
        for algorithm in ("sha512", "sha256", "sha1", "md5"):
            if algorithm in by_algorithm:
                return by_algorithm[algorithm]
        return None

    @property
    def cascading_dependencies(self) -> tuple[DependencyEdge, ...]:
        """Edges whose relation kind is resolved transitively."""
        return tuple(d for d in self.dependencies if d.relation.cascades)


@dataclass(frozen=True, slots=True)
class ProjectMetadata:
    """Descriptive metadata of a catalog project."""

    id: int
    name: str
    summary: str = ""
    thumbnail_url: str | None = None

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> Self:
        logo = data.get("logo") or {}
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            summary=data.get("summary", ""),
            thumbnail_url=logo.get("thumbnailUrl") or None,
        )


@dataclass(frozen=True, slots=True)
class Category:
    """A catalog category (or class, when ``is_class`` is set)."""

    id: int
    name: str
    slug: str = ""
    class_id: int | None = None
    is_class: bool = False

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            slug=data.get("slug", ""),
            class_id=data.get("classId"),
            is_class=bool(data.get("isClass", False)),
        )


@dataclass(frozen=True, slots=True)
class FilePage:
    """One page of a catalog file listing."""

    data: tuple[PackageFile, ...]
    index: int = 0
    page_size: int = 0
    total_count: int = 0

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> Self:
        pagination = payload.get("pagination") or {}
        data = tuple(PackageFile.from_api(raw) for raw in payload.get("data", []))
        return cls(
            data=data,
            index=int(pagination.get("index", 0)),
            page_size=int(pagination.get("pageSize", len(data))),
            total_count=int(pagination.get("totalCount", len(data))),
        )


@dataclass(frozen=True, slots=True)
class SearchOptions:
    """Filters for a catalog project search."""

    search_filter: str = ""
    game_version: str = ""
    loader_type: LoaderType = LoaderType.ANY
    category_id: int | None = None
    class_id: int | None = None
    index: int = 0
    page_size: int = 25
    sort_field: int | None = None

    def to_params(self) -> dict[str, str | int]:
        """Render as catalog query parameters, omitting unset filters."""
        params: dict[str, str | int] = {"index": self.index, "pageSize": self.page_size}
        if self.search_filter:
            params["searchFilter"] = self.search_filter
        if self.game_version:
            params["gameVersion"] = self.game_version
        if self.loader_type is not LoaderType.ANY:
            params["modLoaderType"] = int(self.loader_type)
        if self.category_id is not None:
            params["categoryId"] = self.category_id
        if self.class_id is not None:
            params["classId"] = self.class_id
        if self.sort_field is not None:
            params["sortField"] = self.sort_field
        return params


@dataclass(frozen=True, slots=True)
class InstallRequest:
    """A fully resolved request to install one file.

    Attributes:
        file: The file to install.
        category: Target category; only BUNDLE installs cascade.
        workspace_path: Optional workspace to link the result into.
        ignore_dependencies: Skip dependency resolution entirely.
    """

    file: PackageFile
    category: InstallCategory
    workspace_path: Path | None = None
    ignore_dependencies: bool = False

    def for_dependency(self, file: PackageFile) -> Self:
        """Return the request used to install one of this file's dependencies.

        The resolved closure is already flat, so dependency installs do not
        resolve again.
        """
        return type(self)(
            file=file,
            category=self.category,
            workspace_path=self.workspace_path,
            ignore_dependencies=True,
        )


@dataclass(frozen=True, slots=True)
class CachedResource:
    """A content store entry.

    Attributes:
        identity_uris: Origin-identifying strings used as the lookup key.
        path: Location of the stored blob.
        domain: Store domain of the resource.
        file_name: Original artifact file name.
        sha1: Content hash, also the blob name.
        metadata: Free-form origin metadata.
        tags: Searchable tags.
        icons: Icon URLs.
        imported_at: When the resource was first imported.
    """

    identity_uris: frozenset[str]
    path: Path
    domain: ResourceDomain
    file_name: str
    sha1: str
    metadata: Mapping[str, Any] = field(default_factory=dict)
    tags: tuple[str, ...] = ()
    icons: tuple[str, ...] = ()
    imported_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True, slots=True)
class InstallResult:
    """Outcome of installing one file and its successful dependencies."""

    file: PackageFile
    project: ProjectMetadata | None
    resource: CachedResource
    dependencies: tuple[InstallResult, ...] = ()

    def walk(self) -> list[InstallResult]:
        """Flatten the result tree, depth first, this result first."""
        results = [self]
        for child in self.dependencies:
            results.extend(child.walk())
        return results


@dataclass(frozen=True, slots=True)
class DownloadTask:
    """A verified multi-mirror download handed to the task scheduler.

    Attributes:
        urls: Mirror URLs in priority order.
        destination: Final path of the verified file.
        checksum: Optional checksum to verify after download.
        name: Task name used for progress and logging.
        progress: Optional callback(bytes_downloaded, total_bytes).
        retries: Attempts per mirror on transient errors.
    """

    urls: tuple[str, ...]
    destination: Path
    checksum: FileHash | None = None
    name: str = ""
    progress: ProgressCallback | None = None
    retries: int = 3

    def __post_init__(self) -> None:
        """Validate task fields after initialization."""
        if not self.urls:
            raise ValueError("DownloadTask requires at least one URL")
