"""
In-Memory Accelerator.

A small thread-safe TTL map that mirrors durable cache rows for hot reads.
The facade instantiates it three times: ranked users, wallet payloads and
allowed avatar CIDs.

Entries carry their own absolute expiry (epoch milliseconds) and are treated
as absent once read past it, with or without a sweep. The map is never the
source of truth for a miss; callers fall through to the store.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import Hashable, Iterable, Iterator
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True)
class MemoryEntry(Generic[V]):
    """Cached value plus its absolute expiry."""

    value: V
    expires_at: int

    def is_expired(self, now: int) -> bool:
        return self.expires_at <= now


class TTLCache(Generic[K, V]):
    """
    Thread-safe TTL map with optional LRU bound.

    Batch updates (set_many, replace_all) are applied under one lock so
    concurrent readers never observe a half-applied batch.

    Attributes:
        name: Label used in stats output.
        max_entries: LRU bound (0 = unlimited).
        hits: Reads served from memory.
        misses: Reads that fell through (absent or expired).
    """

    def __init__(self, name: str, max_entries: int = 0) -> None:
        self.name = name
        self.max_entries = max_entries
        self._entries: OrderedDict[K, MemoryEntry[V]] = OrderedDict()
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0

    def get_entry(self, key: K, now: int) -> MemoryEntry[V] | None:
        """
        Look up an unexpired entry, evicting it if it has expired.

        Args:
            key: Cache key
            now: Current time in epoch milliseconds

        Returns:
            The entry, or None when absent or expired
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.is_expired(now):
                del self._entries[key]
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return entry

    def get(self, key: K, now: int) -> V | None:
        entry = self.get_entry(key, now)
        return entry.value if entry is not None else None

    def set(self, key: K, value: V, expires_at: int) -> None:
        with self._lock:
            self._store(key, value, expires_at)

    def set_many(self, items: Iterable[tuple[K, V]], expires_at: int) -> None:
        """Insert a batch sharing one expiry as a single unit."""
        with self._lock:
            for key, value in items:
                self._store(key, value, expires_at)

    def replace_all(self, items: Iterable[tuple[K, V, int]]) -> None:
        """Swap the whole contents for ``(key, value, expires_at)`` triples."""
        with self._lock:
            self._entries.clear()
            for key, value, expires_at in items:
                self._store(key, value, expires_at)

    def discard(self, key: K) -> bool:
        """Remove a key if present. Returns True if something was removed."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every entry and reset statistics."""
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def purge_expired(self, now: int) -> int:
        """Remove entries expired at ``now``. Returns the number removed."""
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def _store(self, key: K, value: V, expires_at: int) -> None:
        # Caller holds the lock
        if key in self._entries:
            self._entries.move_to_end(key)
        self._entries[key] = MemoryEntry(value=value, expires_at=expires_at)
        if self.max_entries and len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def __contains__(self, key: object) -> bool:
        """Raw presence check, ignoring expiry and LRU order."""
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[K]:
        with self._lock:
            return iter(list(self._entries.keys()))

    @property
    def stats(self) -> dict[str, Any]:
        """Size, bound, hits, misses and hit rate."""
        with self._lock:
            total = self.hits + self.misses
            return {
                "name": self.name,
                "size": len(self._entries),
                "max_entries": self.max_entries,
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": round(self.hits / total, 4) if total else 0.0,
            }
