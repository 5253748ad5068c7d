"""Domain exceptions for packstash.

All library errors inherit from PackstashError, allowing users to catch
any library exception with a single except clause. Each exception provides
a recovery_hint property with guidance on resolving the error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from pathlib import Path


class PackstashError(Exception):
    """Base class for all packstash exceptions.

    Catch this to handle any error from the library.
    """

    @property
    def recovery_hint(self) -> str | None:
        """Optional guidance on how to resolve this error."""
        return None


class ContractViolation(PackstashError, ValueError):
    """Raised when a caller passes missing or invalid required arguments.

    Never retried. Also raised for illegal install state transitions.
    """

    pass


class ConfigurationError(PackstashError):
    """Raised for configuration problems (missing or malformed settings)."""

    pass


class CatalogError(PackstashError):
    """Base class for catalog query failures.

    Attributes:
        endpoint: The catalog path that was queried.
        status_code: HTTP status code, if the server answered.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        endpoint: str = "",
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.status_code = status_code
        self.cause = cause
        super().__init__(message)

    @property
    def recovery_hint(self) -> str | None:
        """Suggest checking the API key on authorization failures."""
        if self.status_code in (401, 403):
            return "Check that CURSEFORGE_API_KEY is set to a valid API key"
        return None


class TransientFetchError(CatalogError):
    """A catalog lookup failed on a dependency edge or metadata fetch.

    Recovered locally by the caller: logged and skipped.
    """

    pass


class RootFetchError(CatalogError):
    """The root file's own project or identity could not be resolved."""

    @property
    def recovery_hint(self) -> str:
        """Suggest verifying the ids."""
        return "Verify the project and file ids exist in the catalog"


class TransportError(PackstashError):
    """A single mirror could not be downloaded.

    Attributes:
        source: The URL or path that failed.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        source: str,
        cause: Exception | None = None,
    ) -> None:
        self.source = source
        self.cause = cause
        super().__init__(message)


class TransportNotFoundError(TransportError):
    """The mirror does not have the requested file."""

    @property
    def recovery_hint(self) -> str:
        """Suggest verifying the URL."""
        return f"Verify the mirror URL exists: {self.source}"


class DownloadVerificationError(PackstashError):
    """Raised when every mirror failed or produced a checksum mismatch.

    Attributes:
        name: Name of the download task.
        urls: The mirror URLs that were tried, in order.
        errors: One message per failed attempt.
    """

    def __init__(
        self,
        message: str,
        name: str,
        urls: list[str] | None = None,
        errors: list[str] | None = None,
    ) -> None:
        self.name = name
        self.urls = urls if urls is not None else []
        self.errors = errors if errors is not None else []
        super().__init__(message)

    @property
    def recovery_hint(self) -> str:
        """Suggest retrying later."""
        return "The mirrors may be temporarily unavailable; retry the install later"


class StoreWriteError(PackstashError):
    """Raised when the content store cannot import or link a resource.

    Attributes:
        path: The path involved in the failed operation.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        path: Path | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.path = path
        self.cause = cause
        super().__init__(message)

    @property
    def recovery_hint(self) -> str | None:
        """Suggest checking disk space and permissions."""
        return "Check free disk space and write permissions of the store directory"


class StoreCorruptError(StoreWriteError):
    """Raised when a store sidecar record is corrupt or unreadable.

    Attributes:
        key: The content hash of the corrupt entry.
    """

    def __init__(
        self,
        message: str,
        key: str,
        path: Path,
        cause: Exception | None = None,
    ) -> None:
        self.key = key
        super().__init__(message, path=path, cause=cause)

    @property
    def recovery_hint(self) -> str:
        """Suggest deleting the corrupt entry."""
        return f"Delete store files for '{self.key}' and reinstall"


class InstallCancelledError(PackstashError):
    """Raised at a suspension point once the install was cancelled."""

    pass


class InstallError(PackstashError):
    """Raised when the root file of an install cannot be installed.

    Attributes:
        file_id: Catalog id of the file.
        display_name: Human readable file name for messages.
        cause: The underlying exception.
    """

    def __init__(
        self,
        file_id: int,
        display_name: str,
        cause: Exception | None = None,
    ) -> None:
        self.file_id = file_id
        self.display_name = display_name
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to install '{display_name}' ({file_id}){detail}")

    @property
    def recovery_hint(self) -> str | None:
        """Forward the cause's hint when it has one."""
        if isinstance(self.cause, PackstashError):
            return self.cause.recovery_hint
        return None
