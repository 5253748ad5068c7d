"""Verified multi-mirror downloads of catalog files."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import quote

from packstash.core.cancellation import CancelToken
from packstash.core.exceptions import (
    ContractViolation,
    DownloadVerificationError,
    InstallCancelledError,
)
from packstash.core.models import DownloadTask, FileHash, PackageFile


if TYPE_CHECKING:
    from packstash.core.models import ProgressCallback
    from packstash.core.ports import TaskSchedulerPort


logger = logging.getLogger(__name__)

MIRROR_HOSTS = (
    "https://edge.forgecdn.net",
    "https://mediafilez.forgecdn.net",
)


def guess_mirror_urls(file_id: int, file_name: str) -> list[str]:
    """Derive download URLs from the CDN naming convention.

    The CDN stores file 4567890 as ``files/4567/890/<file name>``: the first
    four digits of the id, then the rest without leading zeros. An id of four
    digits or fewer has no second segment.

    Args:
        file_id: Catalog file id.
        file_name: Artifact file name.

    Returns:
        One URL per known mirror host, in priority order.

    Example:
        >>> guess_mirror_urls(4567890, "x.jar")[0]
        'https://edge.forgecdn.net/files/4567/890/x.jar'
    """
    digits = str(file_id)
    segments = [digits[:4]]
    if digits[4:]:
        segments.append(digits[4:].lstrip("0") or "0")
    path = "/".join(["files", *segments, quote(file_name)])
    return [f"{host}/{path}" for host in MIRROR_HOSTS]


def download_urls_for(file: PackageFile) -> list[str]:
    """Candidate URLs for a file: its direct URL, else the guessed mirrors."""
    if file.download_url:
        return [file.download_url]
    return guess_mirror_urls(file.id, file.file_name)


class DownloadOrchestrator:
    """Builds verified download tasks and waits for the scheduler to run them."""

    def __init__(
        self,
        scheduler: TaskSchedulerPort,
        *,
        retries: int = 3,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            scheduler: Scheduler that runs download tasks.
            retries: Attempts per mirror handed to each task.
        """
        self._scheduler = scheduler
        self._retries = retries

    def fetch_artifact(
        self,
        urls: Sequence[str],
        destination: Path,
        checksum: FileHash | None = None,
        *,
        name: str = "",
        progress: ProgressCallback | None = None,
        cancel_token: CancelToken | None = None,
    ) -> Path:
        """Download one artifact from the first mirror that yields a valid file.

        Args:
            urls: Mirror URLs in priority order; must not be empty.
            destination: Where the verified file is written.
            checksum: Optional checksum the file must match.
            name: Task name for logging and progress.
            progress: Optional callback(bytes_downloaded, total_bytes).
            cancel_token: Cancels the in-flight download when cancelled.

        Returns:
            The destination path.

        Raises:
            ContractViolation: If urls is empty.
            DownloadVerificationError: If every mirror failed or mismatched.
            InstallCancelledError: If cancelled before or during the download.
        """
        if not urls:
            raise ContractViolation("fetch_artifact() requires at least one URL")
        token = cancel_token or CancelToken()
        token.raise_if_cancelled()

        task = DownloadTask(
            urls=tuple(urls),
            destination=destination,
            checksum=checksum,
            name=name or destination.name,
            progress=progress,
            retries=self._retries,
        )
        logger.info("Downloading %s from %d mirror(s)", task.name, len(task.urls))
        handle = self._scheduler.submit(task)
        with token.on_cancel(handle.cancel):
            try:
                return handle.result()
            except (DownloadVerificationError, InstallCancelledError):
                raise
            except Exception as e:
                raise DownloadVerificationError(
                    f"Download of {task.name} failed: {e}",
                    name=task.name,
                    urls=list(task.urls),
                    errors=[str(e)],
                ) from e
