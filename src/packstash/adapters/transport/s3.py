"""S3 transport for self-hosted mirrors, using boto3."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from packstash.core.exceptions import TransportError, TransportNotFoundError


if TYPE_CHECKING:
    from pathlib import Path

    from packstash.core.ports import ProgressCallback


# Chunk size for streaming downloads (64KB)
_CHUNK_SIZE = 64 * 1024


class S3Transport:
    """Transport for ``s3://bucket/key`` mirror URLs.

    Implements TransportPort for AWS S3 and S3-compatible object stores.
    """

    def __init__(self, client: Any | None = None) -> None:
        """Initialize S3 transport.

        Args:
            client: Optional boto3 S3 client. Created lazily on first use
                if not provided.
        """
        self._client = client

    @property
    def client(self) -> Any:
        """The boto3 S3 client."""
        if self._client is None:
            self._client = boto3.client("s3")
        return self._client

    def download(self, source: str, dest: Path, progress: ProgressCallback) -> None:
        """Download an object from S3 to local path with progress reporting.

        Args:
            source: S3 URI (s3://bucket/key).
            dest: Local destination path.
            progress: Callback function(bytes_downloaded, total_bytes).

        Raises:
            TransportNotFoundError: If object does not exist.
            TransportError: For other S3 errors.
        """
        bucket, key = self._parse_s3_uri(source)

        try:
            response = self.client.get_object(Bucket=bucket, Key=key)
        except ClientError as e:
            raise self._translate_client_error(e, source) from e
        except BotoCoreError as e:
            raise TransportError(f"S3 error: {e}", source=source, cause=e) from e

        total_size = response["ContentLength"]
        body = response["Body"]

        bytes_downloaded = 0
        with dest.open("wb") as f:
            for chunk in iter(lambda: body.read(_CHUNK_SIZE), b""):
                f.write(chunk)
                bytes_downloaded += len(chunk)
                progress(bytes_downloaded, total_size)

    def _parse_s3_uri(self, uri: str) -> tuple[str, str]:
        """Parse S3 URI into bucket and key.

        Raises:
            TransportError: If the URI has no bucket or key.
        """
        if not uri.startswith("s3://"):
            raise TransportError(f"Invalid S3 URI: {uri}", source=uri)
        path = uri[5:]  # Remove "s3://"
        if "/" not in path:
            raise TransportError(f"S3 URI must include key: {uri}", source=uri)
        bucket, key = path.split("/", 1)
        if not bucket or not key:
            raise TransportError(f"S3 URI must include bucket and key: {uri}", source=uri)
        return bucket, key

    def _translate_client_error(self, error: ClientError, source: str) -> TransportError:
        """Translate botocore ClientError to domain exception."""
        code = error.response.get("Error", {}).get("Code", "")

        if code in ("404", "NoSuchKey", "NoSuchBucket"):
            return TransportNotFoundError(
                f"Object not found: {source}",
                source=source,
                cause=error,
            )

        return TransportError(
            f"S3 error ({code}): {error}",
            source=source,
            cause=error,
        )
