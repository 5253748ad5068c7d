"""TransportRouter composite adapter for URI scheme-based routing."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from pathlib import Path

    from packstash.core.ports import ProgressCallback, TransportPort


def parse_uri_scheme(uri: str) -> str | None:
    """Extract the URI scheme from a source string.

    Args:
        uri: Source URI or file path.

    Returns:
        The scheme (e.g., 'https', 's3', 'file') or None for local paths.
    """
    if "://" in uri:
        scheme = uri.split("://", 1)[0]
        # Avoid confusing Windows drive letters (C:) with schemes
        if len(scheme) > 1:
            return scheme.lower()
    return None


def strip_file_scheme(uri: str) -> str:
    """Strip file:// prefix from URI, returning plain path.

    Args:
        uri: URI that may have file:// prefix.

    Returns:
        The path without file:// prefix.
    """
    if uri.startswith("file://"):
        return uri[7:]  # len("file://") == 7
    return uri


class TransportRouter:
    """Transport that routes each URL to a backend based on its scheme.

    Implements TransportPort by delegating to scheme-specific adapters.
    """

    def __init__(self, backends: dict[str | None, TransportPort]) -> None:
        """Initialize with scheme-to-adapter mapping.

        Args:
            backends: Mapping of scheme (e.g., 'https', 's3', 'file') to
                TransportPort adapter. Use None as key for local paths
                without scheme.
        """
        self._backends = backends

    def _get_backend_and_path(self, uri: str) -> tuple[TransportPort, str]:
        """Get the appropriate backend and normalized path for a URI."""
        scheme = parse_uri_scheme(uri)
        if scheme in self._backends:
            # Strip file:// prefix for filesystem backend
            path = strip_file_scheme(uri) if scheme == "file" else uri
            return self._backends[scheme], path
        if scheme is None and None in self._backends:
            return self._backends[None], uri
        scheme_display = f"'{scheme}'" if scheme else "local path"
        raise ValueError(f"No transport registered for scheme {scheme_display}")

    def download(self, source: str, dest: Path, progress: ProgressCallback) -> None:
        """Download by delegating to the backend for the URL's scheme."""
        backend, path = self._get_backend_and_path(source)
        backend.download(path, dest, progress)

    def close(self) -> None:
        """Close every backend that holds connections."""
        for backend in {id(b): b for b in self._backends.values()}.values():
            close = getattr(backend, "close", None)
            if close is not None:
                close()


def create_router(
    s3_client: Any | None = None,
    http_client: Any | None = None,
    timeout: float = 30.0,
) -> TransportRouter:
    """Create a TransportRouter with default backends.

    Args:
        s3_client: Optional boto3 S3 client. If not provided, created lazily.
        http_client: Optional httpx.Client. If not provided, created lazily.
        timeout: Timeout for the default HTTP client.

    Returns:
        TransportRouter configured with HTTP, S3 and filesystem transports.
    """
    from packstash.adapters.transport import (
        FilesystemTransport,
        HttpTransport,
        S3Transport,
    )

    fs = FilesystemTransport()
    http = HttpTransport(client=http_client, timeout=timeout)
    return TransportRouter(
        backends={
            "http": http,
            "https": http,
            "s3": S3Transport(client=s3_client),
            "file": fs,
            None: fs,
        }
    )
