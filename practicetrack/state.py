"""Active session state store — the one in-progress session, behind a lock."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from practicetrack.activity import ActivityLog
from practicetrack.models import ActiveSessionState


Listener = Callable[[ActiveSessionState | None], None]


class ActiveSessionStore:
    """Holds the current ActiveSessionState snapshot (or None).

    Snapshots are immutable; writers replace the whole value. Read-modify-write
    sequences run inside locked() so that concurrent callers are serialized.
    Subscribers are notified synchronously after every change, still under the
    lock, so they observe changes in write order. A listener that raises is
    logged and skipped; the new state stays committed.
    """

    def __init__(self, initial: ActiveSessionState | None = None, log: ActivityLog | None = None):
        self._state = initial
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []
        self.log = log or ActivityLog()

    @contextmanager
    def locked(self) -> Iterator[None]:
        with self._lock:
            yield

    def get(self) -> ActiveSessionState | None:
        with self._lock:
            return self._state

    def set(self, state: ActiveSessionState | None) -> None:
        with self._lock:
            if state == self._state:
                return
            self._state = state
            for listener in list(self._listeners):
                try:
                    listener(state)
                except Exception as e:
                    self.log.log(f"✗ state listener failed: {e}")

    def clear(self) -> None:
        self.set(None)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a function that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe
