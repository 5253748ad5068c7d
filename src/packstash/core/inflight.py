"""In-flight request map: concurrent callers with the same key share one call."""

from __future__ import annotations

import threading
from collections.abc import Callable, Hashable
from concurrent.futures import Future
from typing import TYPE_CHECKING, Generic, TypeVar


if TYPE_CHECKING:
    from packstash.core.cancellation import CancelToken


T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Deduplicate concurrent calls that share a derived key.

    The first caller for a key (the leader) runs the function; callers
    arriving while it runs wait for and receive the leader's result or
    exception. Nothing is kept once the call completes, so later calls run
    again and see fresh state.

    Example:
        >>> flight: SingleFlight[int] = SingleFlight()
        >>> flight.do("answer", lambda: 42)
        42
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: dict[Hashable, Future[T]] = {}

    def do(
        self,
        key: Hashable,
        fn: Callable[[], T],
        cancel_token: CancelToken | None = None,
    ) -> T:
        """Run fn once per key among concurrent callers.

        Args:
            key: Derived key identifying equivalent calls.
            fn: The call to run if no equivalent call is in flight.
            cancel_token: Interrupts this caller's wait as a follower. The
                leader's call is left running for the other callers.

        Returns:
            The result of the shared call.

        Raises:
            InstallCancelledError: If cancel_token is cancelled while this
                caller waits on another caller's call.
        """
        with self._lock:
            call = self._calls.get(key)
            leader = call is None
            if call is None:
                call = Future()
                self._calls[key] = call

        if not leader:
            if cancel_token is not None:
                self._wait(call, cancel_token)
            return call.result()

        try:
            result = fn()
        except BaseException as e:
            # Unregister first so woken followers can start a fresh call
            self._forget(key)
            call.set_exception(e)
            raise
        self._forget(key)
        call.set_result(result)
        return result

    @staticmethod
    def _wait(call: Future[T], cancel_token: CancelToken) -> None:
        wake = threading.Event()
        call.add_done_callback(lambda _: wake.set())
        with cancel_token.on_cancel(wake.set):
            wake.wait()
        cancel_token.raise_if_cancelled()

    def _forget(self, key: Hashable) -> None:
        with self._lock:
            del self._calls[key]

    def in_flight(self) -> int:
        """Number of keys with a call currently running."""
        with self._lock:
            return len(self._calls)
