"""CurseForge REST API client implementing CatalogPort."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from typing import Any

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from packstash.config import DEFAULT_API_URL
from packstash.core.exceptions import CatalogError
from packstash.core.models import (
    Category,
    FilePage,
    LoaderType,
    PackageFile,
    ProjectMetadata,
    SearchOptions,
)


logger = logging.getLogger(__name__)

MINECRAFT_GAME_ID = 432
_USER_AGENT = "packstash"


class _TransientCatalogError(CatalogError):
    """Timeouts, connection failures, 429 and 5xx: retried before surfacing."""

    pass


class CurseForgeClient:
    """Catalog adapter for the CurseForge v1 API.

    Every response is the JSON envelope ``{"data": ...}``; lists of files
    and search results also carry ``pagination``. One pooled httpx.Client
    is shared across threads.

    Example:
        >>> client = CurseForgeClient(api_key="...")
        >>> client.get_project(238222).name
        'Just Enough Items (JEI)'
    """

    def __init__(
        self,
        api_key: str = "",
        base_url: str = DEFAULT_API_URL,
        timeout: float = 7.0,
        retries: int = 3,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: API key sent as the ``x-api-key`` header.
            base_url: API root URL.
            timeout: Request timeout in seconds.
            retries: Attempts per request on transient errors.
            client: Optional preconfigured httpx client (tests pass one with
                a MockTransport). Created lazily if not provided.
            sleep: Sleep function used between retries.
        """
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._retries = max(1, retries)
        self._client = client
        self._sleep = sleep
        self._lock = threading.Lock()

    @property
    def client(self) -> httpx.Client:
        """The shared httpx client."""
        with self._lock:
            if self._client is None:
                headers = {"Accept": "application/json", "User-Agent": _USER_AGENT}
                if self._api_key:
                    headers["x-api-key"] = self._api_key
                self._client = httpx.Client(
                    base_url=self._base_url, timeout=self._timeout, headers=headers
                )
            return self._client

    def close(self) -> None:
        """Close the underlying client."""
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    def __enter__(self) -> CurseForgeClient:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    # CatalogPort

    def get_categories(self) -> list[Category]:
        payload = self._request("GET", "/v1/categories", params={"gameId": MINECRAFT_GAME_ID})
        return [Category.from_api(raw) for raw in payload["data"]]

    def get_project(self, project_id: int) -> ProjectMetadata:
        payload = self._request("GET", f"/v1/mods/{project_id}")
        return ProjectMetadata.from_api(payload["data"])

    def get_project_description(self, project_id: int) -> str:
        payload = self._request("GET", f"/v1/mods/{project_id}/description")
        return str(payload["data"])

    def get_project_files(
        self,
        project_id: int,
        *,
        game_version: str | None = None,
        loader_type: LoaderType | None = None,
        page_size: int = 50,
        index: int = 0,
    ) -> FilePage:
        params: dict[str, Any] = {"index": index, "pageSize": page_size}
        if game_version:
            params["gameVersion"] = game_version
        if loader_type is not None and loader_type is not LoaderType.ANY:
            params["modLoaderType"] = int(loader_type)
        payload = self._request("GET", f"/v1/mods/{project_id}/files", params=params)
        return FilePage.from_api(payload)

    def get_project_file(self, project_id: int, file_id: int) -> PackageFile:
        payload = self._request("GET", f"/v1/mods/{project_id}/files/{file_id}")
        return PackageFile.from_api(payload["data"])

    def get_projects(self, project_ids: Sequence[int]) -> list[ProjectMetadata]:
        if not project_ids:
            return []
        payload = self._request("POST", "/v1/mods", json={"modIds": list(project_ids)})
        return [ProjectMetadata.from_api(raw) for raw in payload["data"]]

    def get_files(self, file_ids: Sequence[int]) -> list[PackageFile]:
        if not file_ids:
            return []
        payload = self._request("POST", "/v1/mods/files", json={"fileIds": list(file_ids)})
        return [PackageFile.from_api(raw) for raw in payload["data"]]

    def search_projects(self, options: SearchOptions) -> list[ProjectMetadata]:
        params: dict[str, Any] = {"gameId": MINECRAFT_GAME_ID, **options.to_params()}
        payload = self._request("GET", "/v1/mods/search", params=params)
        return [ProjectMetadata.from_api(raw) for raw in payload["data"]]

    # HTTP plumbing

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> dict[str, Any]:
        """Send one request with retries and return the decoded envelope.

        Raises:
            CatalogError: On HTTP errors, exhausted retries or bad JSON.
        """
        retrying = Retrying(
            retry=retry_if_exception_type(_TransientCatalogError),
            stop=stop_after_attempt(self._retries),
            wait=wait_exponential(multiplier=0.5, max=8),
            sleep=self._sleep,
            reraise=True,
        )
        return retrying(self._send, method, path, params, json)

    def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None,
        json: Any,
    ) -> dict[str, Any]:
        try:
            response = self.client.request(method, path, params=params, json=json)
        except httpx.TransportError as e:
            raise _TransientCatalogError(
                f"Catalog request {method} {path} failed: {e}", endpoint=path, cause=e
            ) from e

        status = response.status_code
        if status == 429 or status >= 500:
            raise _TransientCatalogError(
                f"Catalog server error ({status}) for {path}",
                endpoint=path,
                status_code=status,
            )
        if status >= 400:
            raise CatalogError(
                f"Catalog request failed ({status}) for {path}",
                endpoint=path,
                status_code=status,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise CatalogError(
                f"Catalog returned invalid JSON for {path}", endpoint=path, cause=e
            ) from e
        if not isinstance(payload, dict) or "data" not in payload:
            raise CatalogError(f"Catalog response for {path} has no data", endpoint=path)
        logger.debug("%s %s -> %d", method, path, status)
        return payload
