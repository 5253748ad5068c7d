"""Per-file install state machine and paired start/end events."""

from __future__ import annotations

import contextlib
import logging
import threading
from collections import Counter
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING

from packstash.core.exceptions import ContractViolation
from packstash.core.models import InstallState


if TYPE_CHECKING:
    from packstash.core.ports import InstallListener


logger = logging.getLogger(__name__)

_TRANSITIONS: dict[InstallState, frozenset[InstallState]] = {
    InstallState.IDLE: frozenset({InstallState.RESOLVING}),
    InstallState.RESOLVING: frozenset({InstallState.DOWNLOADING, InstallState.FAILED}),
    InstallState.DOWNLOADING: frozenset({InstallState.IMPORTING, InstallState.FAILED}),
    InstallState.IMPORTING: frozenset({InstallState.LINKING, InstallState.FAILED}),
    # Link failures are logged, never terminal
    InstallState.LINKING: frozenset({InstallState.DONE}),
    InstallState.DONE: frozenset(),
    InstallState.FAILED: frozenset(),
}


class InstallRun:
    """State of a single install_file invocation.

    Attributes:
        file_id: Catalog id of the file being installed.
        state: Current state.
        history: Every state entered, in order, starting with IDLE.
    """

    def __init__(self, file_id: int) -> None:
        self.file_id = file_id
        self.state = InstallState.IDLE
        self.history: list[InstallState] = [InstallState.IDLE]

    def advance(self, state: InstallState) -> None:
        """Move to state.

        Raises:
            ContractViolation: If the transition is not allowed.
        """
        if state not in _TRANSITIONS[self.state]:
            raise ContractViolation(
                f"Illegal install transition {self.state.name} -> {state.name} "
                f"for file {self.file_id}"
            )
        self.state = state
        self.history.append(state)

    def fail(self) -> bool:
        """Move to FAILED if allowed from the current state."""
        if InstallState.FAILED not in _TRANSITIONS[self.state]:
            return False
        self.advance(InstallState.FAILED)
        return True


class InstallTracker:
    """Tracks installs in progress and notifies listeners.

    ``track()`` brackets one install: it emits ``download_start`` on entry
    and guarantees ``download_end`` on every exit path, including errors
    and cancellation.

    Example:
        >>> tracker = InstallTracker()
        >>> with tracker.track(20) as run:
        ...     run.advance(InstallState.DOWNLOADING)
        ...     run.advance(InstallState.IMPORTING)
        ...     run.advance(InstallState.LINKING)
        >>> run.state
        <InstallState.DONE: 'done'>
    """

    def __init__(self, listeners: Sequence[InstallListener] = ()) -> None:
        self._listeners = list(listeners)
        self._lock = threading.Lock()
        self._active: Counter[int] = Counter()

    def add_listener(self, listener: InstallListener) -> None:
        """Register a listener for subsequent events."""
        with self._lock:
            self._listeners.append(listener)

    @property
    def downloading(self) -> frozenset[int]:
        """File ids with at least one install in progress."""
        with self._lock:
            return frozenset(+self._active)

    @contextlib.contextmanager
    def track(self, file_id: int) -> Iterator[InstallRun]:
        """Bracket one install of file_id with start and end events.

        The run enters RESOLVING on entry. On a clean exit it is driven to
        DONE; on an exception it is marked FAILED where that is legal.
        """
        run = InstallRun(file_id)
        with self._lock:
            self._active[file_id] += 1
            listeners = list(self._listeners)
        for listener in listeners:
            listener.download_start(file_id)
        try:
            run.advance(InstallState.RESOLVING)
            yield run
            if run.state is not InstallState.DONE:
                run.advance(InstallState.DONE)
        except BaseException:
            run.fail()
            raise
        finally:
            with self._lock:
                self._active[file_id] -= 1
                listeners = list(self._listeners)
            for listener in listeners:
                try:
                    listener.download_end(file_id)
                except Exception:
                    logger.exception("Install listener failed on end of %s", file_id)
