"""A thread-safe, fixed-size least-recently-used cache."""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Any, Hashable


class LRU:
    """Caches up to ``size`` values, evicting the least recently used first."""

    def __init__(self, size: int) -> None:
        self.size = size
        self._lock = threading.Lock()
        # Ordered from least to most recently used.
        self._entries: OrderedDict[Hashable, Any] = OrderedDict()

    def load(self, key: Hashable) -> Any:
        """Return the value cached under ``key`` and mark it as recently used.

        Raises KeyError if nothing is cached under ``key``.
        """
        with self._lock:
            value = self._entries[key]
            self._entries.move_to_end(key)
            return value

    def put(self, key: Hashable, value: Any) -> None:
        """Cache ``value`` under ``key``, evicting old entries beyond the size limit."""
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self.size:
                self._entries.popitem(last=False)

    def remove(self, key: Hashable) -> None:
        """Drop ``key`` from the cache if it is present."""
        with self._lock:
            self._entries.pop(key, None)

    def most_recently_used(self, n: int) -> list[Hashable]:
        """Return up to ``n`` keys, most recently used first; all keys if ``n`` < 1."""
        with self._lock:
            keys = list(reversed(self._entries))
        return keys[:n] if n > 0 else keys

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries