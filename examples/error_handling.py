"""Error handling patterns with recovery hints.

This example demonstrates how to handle common errors and use
the recovery_hint property to provide actionable guidance.
"""

import threading

from packstash import (
    CancelToken,
    CatalogError,
    InstallationPipeline,
    InstallCancelledError,
    InstallCategory,
    InstallError,
    InstallRequest,
    InstallResult,
    PackstashError,
    load_settings,
)
from packstash.core.exceptions import DownloadVerificationError


pipeline = InstallationPipeline.from_settings(load_settings())


# Pattern 1: Handle unknown ids and bad API keys
def install_by_id(project_id: int, file_id: int) -> InstallResult | None:
    """Install a file, explaining catalog failures."""
    try:
        file = pipeline.fetch_project_file(project_id, file_id)
    except CatalogError as e:
        # 401/403 suggest checking CURSEFORGE_API_KEY
        print(f"Catalog lookup failed ({e.status_code}) for {e.endpoint}")
        if e.recovery_hint:
            print(f"Hint: {e.recovery_hint}")
        return None
    return pipeline.install_file(InstallRequest(file=file, category=InstallCategory.MOD))


# Pattern 2: Inspect why the file itself failed
def install_with_diagnostics(request: InstallRequest) -> InstallResult | None:
    """Install, printing each failed mirror when every download failed."""
    try:
        return pipeline.install_file(request)
    except InstallError as e:
        print(f"Could not install {e.display_name}")
        if isinstance(e.cause, DownloadVerificationError):
            for error in e.cause.errors:
                print(f"  {error}")
        print(f"Hint: {e.recovery_hint}")
        return None


# Pattern 3: Cancel a running install from another thread
def install_with_timeout(request: InstallRequest, seconds: float) -> InstallResult | None:
    """Cancel the whole install tree if it takes too long."""
    token = CancelToken()
    timer = threading.Timer(seconds, token.cancel)
    timer.start()
    try:
        return pipeline.install_file(request, cancel_token=token)
    except InstallCancelledError:
        print("Install cancelled; no partial files were left behind")
        return None
    finally:
        timer.cancel()


# Pattern 4: Catch-all for any library error
def install_safe(project_id: int, file_id: int) -> InstallResult | None:
    """Install with comprehensive error handling."""
    try:
        return install_by_id(project_id, file_id)
    except PackstashError as e:
        print(f"Error: {e}")
        if e.recovery_hint:
            print(f"Hint: {e.recovery_hint}")
        return None


if __name__ == "__main__":
    try:
        install_safe(238222, 4712866)
    finally:
        pipeline.close()
