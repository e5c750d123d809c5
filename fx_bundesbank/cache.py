"""Thread-safe key/value cache with explicit invalidation."""

from __future__ import annotations

import threading
from typing import Callable, Generic, Hashable, TypeVar

from fx_bundesbank.utils.logger import get_logger

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

LOGGER = get_logger(__name__)


class KeyValueCache(Generic[K, V]):
    """In-memory cache whose entries live until :meth:`invalidate` is called.

    Loaders run outside the lock so a slow store query never blocks readers of
    other keys. Every invalidation bumps a generation counter; a load that
    started before an invalidation is returned to its caller but not stored.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._entries: dict[K, V] = {}
        self._generation = 0
        self._lock = threading.RLock()

    def get(self, key: K) -> V | None:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: K, value: V) -> None:
        with self._lock:
            self._entries[key] = value

    def get_or_load(self, key: K, loader: Callable[[], V]) -> V:
        with self._lock:
            if key in self._entries:
                return self._entries[key]
            generation = self._generation
        value = loader()
        with self._lock:
            if generation == self._generation:
                self._entries[key] = value
            else:
                LOGGER.debug("Cache %s discarded stale load for %s", self.name, key)
        return value

    def invalidate(self, key: K | None = None) -> None:
        """Drop ``key`` or, when omitted, every entry."""

        with self._lock:
            self._generation += 1
            if key is None:
                dropped = len(self._entries)
                self._entries.clear()
                LOGGER.debug("Cache %s invalidated (%s entries)", self.name, dropped)
            else:
                self._entries.pop(key, None)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["KeyValueCache"]
