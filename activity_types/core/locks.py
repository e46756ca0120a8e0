from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List


class OwnerLock:
    """Keyed mutex: at most one holder per owner id, owners never block each other.

    Entries are reference counted and removed once nobody holds or waits on
    them, so the map only grows with the number of owners currently busy.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, List] = {}
        self._guard = threading.Lock()

    def _acquire_entry(self, owner_id: str) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(owner_id)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[owner_id] = entry
            entry[1] += 1
            return entry[0]

    def _release_entry(self, owner_id: str) -> None:
        with self._guard:
            entry = self._locks.get(owner_id)
            if entry is None:
                return
            entry[1] -= 1
            if entry[1] <= 0:
                del self._locks[owner_id]

    @contextmanager
    def hold(self, owner_id: str) -> Iterator[None]:
        key = str(owner_id)
        lock = self._acquire_entry(key)
        try:
            with lock:
                yield
        finally:
            self._release_entry(key)

    def active_owners(self) -> int:
        with self._guard:
            return len(self._locks)


_owner_lock = OwnerLock()


def get_owner_lock() -> OwnerLock:
    """Process-wide lock shared by every service instance."""
    return _owner_lock
