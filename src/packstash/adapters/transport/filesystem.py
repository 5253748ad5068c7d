"""Filesystem transport for local mirrors and file:// URLs."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from packstash.core.exceptions import TransportError, TransportNotFoundError


if TYPE_CHECKING:
    from packstash.core.ports import ProgressCallback


# Chunk size for reading files (64KB)
_CHUNK_SIZE = 64 * 1024


class FilesystemTransport:
    """Transport that copies from a local path.

    Implements TransportPort. Useful for offline mirrors and testing.
    """

    def download(self, source: str, dest: Path, progress: ProgressCallback) -> None:
        """Copy a file from source to destination with progress reporting.

        Args:
            source: Path to source file.
            dest: Destination path.
            progress: Callback function(bytes_downloaded, total_bytes).

        Raises:
            TransportNotFoundError: If source file does not exist.
            TransportError: If the copy fails.
        """
        source_path = Path(source)
        try:
            total_size = source_path.stat().st_size
        except FileNotFoundError as e:
            raise TransportNotFoundError(
                f"File not found: {source}",
                source=source,
                cause=e,
            ) from e

        bytes_copied = 0
        try:
            with source_path.open("rb") as src, dest.open("wb") as dst:
                for chunk in iter(lambda: src.read(_CHUNK_SIZE), b""):
                    dst.write(chunk)
                    bytes_copied += len(chunk)
                    progress(bytes_copied, total_size)
        except OSError as e:
            raise TransportError(f"Copy failed: {source}: {e}", source=source, cause=e) from e
