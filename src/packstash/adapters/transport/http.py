"""HTTP(S) transport using httpx streaming downloads."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

import httpx

from packstash.core.exceptions import TransportError, TransportNotFoundError


if TYPE_CHECKING:
    from pathlib import Path

    from packstash.core.ports import ProgressCallback


_CHUNK_SIZE = 64 * 1024
_USER_AGENT = "packstash"


class TransientHttpError(TransportError):
    """A failure worth retrying on the same mirror (timeouts, 5xx, 429)."""

    pass


class HttpTransport:
    """Transport for ``http://`` and ``https://`` mirror URLs.

    One pooled httpx.Client is shared by every download thread.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the transport.

        Args:
            client: Optional preconfigured client (tests pass one with a
                MockTransport). Created lazily if not provided.
            timeout: Timeout in seconds for connect and each read.
        """
        self._client = client
        self._timeout = timeout
        self._lock = threading.Lock()

    @property
    def client(self) -> httpx.Client:
        """The shared httpx client."""
        with self._lock:
            if self._client is None:
                self._client = httpx.Client(
                    timeout=self._timeout,
                    follow_redirects=True,
                    headers={"User-Agent": _USER_AGENT},
                )
            return self._client

    def close(self) -> None:
        """Close the underlying client."""
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    def download(self, source: str, dest: Path, progress: ProgressCallback) -> None:
        """Stream a URL into dest with progress reporting.

        Raises:
            TransportNotFoundError: On 404 or 410.
            TransientHttpError: On timeouts, connection errors, 429 and 5xx.
            TransportError: On other HTTP errors.
        """
        try:
            with self.client.stream("GET", source) as response:
                self._raise_for_status(response, source)
                total_size = int(response.headers.get("Content-Length") or 0)
                bytes_downloaded = 0
                with dest.open("wb") as f:
                    for chunk in response.iter_bytes(_CHUNK_SIZE):
                        f.write(chunk)
                        bytes_downloaded += len(chunk)
                        progress(bytes_downloaded, total_size or bytes_downloaded)
        except httpx.TransportError as e:
            raise TransientHttpError(
                f"Connection to {source} failed: {e}", source=source, cause=e
            ) from e

    def _raise_for_status(self, response: httpx.Response, source: str) -> None:
        status = response.status_code
        if status < 400:
            return
        if status in (404, 410):
            raise TransportNotFoundError(f"Not found ({status}): {source}", source=source)
        if status == 429 or status >= 500:
            raise TransientHttpError(f"Server error ({status}): {source}", source=source)
        raise TransportError(f"HTTP error ({status}): {source}", source=source)
