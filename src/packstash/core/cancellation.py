"""Cooperative cancellation shared by every branch of one install tree."""

from __future__ import annotations

import contextlib
import threading
from collections.abc import Callable, Iterator

from packstash.core.exceptions import InstallCancelledError


class CancelToken:
    """Thread-safe cancellation flag with cancel callbacks.

    One token is shared by a top-level install and all of its dependency
    branches. Every suspension point calls ``raise_if_cancelled()``;
    in-flight downloads register their handle's ``cancel`` while waiting.

    Example:
        >>> token = CancelToken()
        >>> token.cancel()
        >>> token.cancelled
        True
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        """Whether cancel() has been called."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Cancel the token and run the registered callbacks once."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def raise_if_cancelled(self) -> None:
        """Raise InstallCancelledError if the token was cancelled."""
        if self._event.is_set():
            raise InstallCancelledError("Install was cancelled")

    @contextlib.contextmanager
    def on_cancel(self, callback: Callable[[], None]) -> Iterator[None]:
        """Run callback if the token is cancelled while the block executes.

        The callback runs immediately when the token is already cancelled.
        """
        with self._lock:
            registered = not self._event.is_set()
            if registered:
                self._callbacks.append(callback)
        if not registered:
            callback()
        try:
            yield
        finally:
            with self._lock, contextlib.suppress(ValueError):
                self._callbacks.remove(callback)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or timeout; return the cancelled state."""
        return self._event.wait(timeout)
