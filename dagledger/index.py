"""Prefix index over hex-encoded transaction IDs for autocompletion."""

from __future__ import annotations

import threading

from sortedcontainers import SortedSet


class Indexer:
    """Indexes transaction IDs so they can be looked up by prefix."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._ids: SortedSet = SortedSet()

    def index(self, tx_id: str) -> None:
        """Add a hex-encoded transaction ID to the index."""
        with self._lock:
            self._ids.add(tx_id)

    def remove(self, tx_id: str) -> None:
        """Remove a hex-encoded transaction ID from the index, if present."""
        with self._lock:
            self._ids.discard(tx_id)

    def find(self, query: str, count: int) -> list[str]:
        """Return up to ``count`` indexed IDs starting with ``query``, in sorted order."""
        if count <= 0:
            return []
        results: list[str] = []
        with self._lock:
            for key in self._ids.irange(minimum=query):
                if len(results) >= count or not key.startswith(query):
                    break
                results.append(key)
        return results

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)