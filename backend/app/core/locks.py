"""Per-key exclusive sections for invoice creation and payment recording."""

import threading
from contextlib import contextmanager


class KeyedLock:
    """Hands out one ``threading.Lock`` per key while anyone holds or waits on it.

    Entries are reference counted and dropped when the last user leaves, so
    keys that are touched once (including ids that do not exist) do not
    accumulate.
    """

    def __init__(self, name: str):
        self.name = name
        self._guard = threading.Lock()
        # key -> [lock, users]
        self._locks: dict = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, key) -> list:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[key] = entry
            entry[1] += 1
            return entry

    def _checkin(self, key, entry: list) -> None:
        with self._guard:
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key):
        entry = self._checkout(key)
        try:
            with entry[0]:
                yield
        finally:
            self._checkin(key, entry)


matter_locks = KeyedLock("matter")
invoice_locks = KeyedLock("invoice")
