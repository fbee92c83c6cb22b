"""Bounded, TTL-aware, thread-safe in-memory response store.

The store maps request fingerprints (see :func:`~cacheproxy.cache.keys.fingerprint`)
to :class:`~cacheproxy.models.CacheEntry` objects. It is the only object
shared between request threads.

Storage is a single :class:`collections.OrderedDict`: a hash map whose
keys are threaded on one doubly linked list. The list *is* the eviction
order, so every key has exactly one position in it. Re-inserting a key
moves that position to the back instead of adding a second one.

Expiry is lazy: an expired entry stays in memory until a lookup notices
it (and removes it) or a later insert evicts or overwrites it. Expired
entries are never returned either way.

See Also:
    :class:`~cacheproxy.models.EvictionPolicy` -- FIFO (default) or LRU.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Optional

from cacheproxy.models import CacheEntry, EvictionPolicy


class CacheStore:
    """Thread-safe response store with capacity and TTL bounds.

    One :class:`threading.Lock` guards the mapping, its ordering and the
    counters together; no I/O ever happens while it is held.

    Args:
        max_entries: Upper bound on stored entries. Must be at least 1.
        eviction: :attr:`EvictionPolicy.FIFO` evicts by insertion order and
            ignores reads; :attr:`EvictionPolicy.LRU` refreshes a key's
            position on every hit.
        clock: Monotonic time source in seconds. ``CacheEntry.created``
            values must come from the same clock (see :meth:`now`).

    Example::

        store = CacheStore(max_entries=2)
        store.set("a", CacheEntry(body=b"A", ttl=5, created=store.now()))
        entry = store.get("a")
    """

    def __init__(
        self,
        max_entries: int = 100,
        eviction: EvictionPolicy = EvictionPolicy.FIFO,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self._max_entries = max_entries
        self._eviction = EvictionPolicy(eviction)
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @property
    def eviction(self) -> EvictionPolicy:
        return self._eviction

    def now(self) -> float:
        """Current reading of the store's clock."""
        return self._clock()

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for *key*, or ``None``.

        An expired entry is removed and reported as a miss. Two threads
        racing on the same expired key are serialised by the lock; the
        loser finds nothing left to remove.
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(now):
                del self._entries[key]
                self._expirations += 1
                self._misses += 1
                return None
            if self._eviction is EvictionPolicy.LRU:
                self._entries.move_to_end(key)
            self._hits += 1
            return entry

    def set(self, key: str, entry: CacheEntry) -> None:
        """Insert or replace *key*.

        A new key arriving at a full store first evicts the single oldest
        key. Replacing an existing key never evicts anything; the key just
        moves to the back of the eviction order.
        """
        with self._lock:
            if key in self._entries:
                self._entries[key] = entry
                self._entries.move_to_end(key)
                return
            if len(self._entries) >= self._max_entries:
                self._entries.popitem(last=False)
                self._evictions += 1
            self._entries[key] = entry

    def clear(self) -> int:
        """Remove every entry and return how many there were.

        The mapping and its ordering empty together. Counters are kept.
        """
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
            return removed

    def keys(self) -> list[str]:
        """Snapshot of stored keys, oldest first. May include expired keys."""
        with self._lock:
            return list(self._entries)

    def stats(self) -> dict[str, Any]:
        """Return store statistics.

        Returns:
            A ``dict`` with ``size``, ``max_entries``, ``eviction``, and the
            cumulative ``hits``, ``misses``, ``evictions`` and
            ``expirations`` counters.
        """
        with self._lock:
            return {
                "size": len(self._entries),
                "max_entries": self._max_entries,
                "eviction": self._eviction.value,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "expirations": self._expirations,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(now)
