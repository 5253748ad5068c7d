"""File hashing helpers used to verify downloads and address stored blobs."""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from pathlib import Path

    from packstash.core.models import FileHash


# Chunk size for hashing (1MB)
_CHUNK_SIZE = 1024 * 1024


def hash_file(path: Path, algorithm: str = "sha1") -> str:
    """Compute the hexadecimal digest of a file.

    Args:
        path: File to hash.
        algorithm: Any algorithm name accepted by hashlib.new().

    Returns:
        Lower-case hexadecimal digest.
    """
    digest = hashlib.new(algorithm)
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def verify_file(path: Path, checksum: FileHash | None) -> bool:
    """Check a file against a declared checksum.

    A missing checksum always verifies.
    """
    if checksum is None:
        return True
    return hash_file(path, checksum.algorithm) == checksum.value.lower()
