"""Bounded in-memory entry store with least-recently-used eviction.

The store maps cache keys to immutable :class:`CacheEntry` records. Entries
are replaced, never mutated. Expiry is derived from ``stored_at`` at read
time, so an expired entry stays in the store (and can still serve as a
network-first fallback or a stale value) until it is replaced or evicted.

All access happens on the event loop thread; no operation here awaits, so
no lock is needed.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A cached response and the moment it was stored.

    Attributes:
        key: Cache key the entry is stored under.
        url: Logical request URL (query parameters included).
        response: The cached :class:`httpx.Response`.
        stored_at: Epoch seconds when the response was stored.
    """

    key: str
    url: str
    response: httpx.Response
    stored_at: float

    def age(self, now: float) -> float:
        """Seconds elapsed since the entry was stored."""
        return now - self.stored_at

    def is_expired(self, now: float, max_age: float) -> bool:
        """Return ``True`` when the entry is older than *max_age* seconds."""
        return now - self.stored_at > max_age


class EntryStore:
    """Key to :class:`CacheEntry` mapping bounded to *max_size* entries.

    :meth:`get` marks an entry as recently used; :meth:`set` evicts the
    least-recently-used entries once the bound is exceeded, regardless of
    whether they have expired.

    Args:
        max_size: Maximum number of entries kept.

    Example::

        store = EntryStore(max_size=2)
        store.set(entry_a.key, entry_a)
        store.set(entry_b.key, entry_b)
        store.get(entry_a.key)            # a is now most recently used
        store.set(entry_c.key, entry_c)   # evicts b
    """

    def __init__(self, max_size: int) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._max_size = max_size
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    @property
    def max_size(self) -> int:
        """The configured capacity."""
        return self._max_size

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for *key* and mark it as recently used."""
        entry = self._entries.get(key)
        if entry is not None:
            self._entries.move_to_end(key)
        return entry

    def peek(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for *key* without touching eviction order."""
        return self._entries.get(key)

    def set(self, key: str, entry: CacheEntry) -> None:
        """Insert or replace *entry*, evicting LRU entries beyond capacity."""
        self._entries[key] = entry
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted least recently used entry %s", evicted)

    def delete(self, key: str) -> bool:
        """Remove *key*. Returns ``True`` if an entry was removed."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Remove every entry."""
        self._entries.clear()

    def size(self) -> int:
        """Number of entries currently stored."""
        return len(self._entries)

    def entries(self) -> list[CacheEntry]:
        """Snapshot of all entries, least recently used first."""
        return list(self._entries.values())

    def keys_for_url(self, url: str) -> list[str]:
        """Return the keys of every entry stored for the logical *url*."""
        return [key for key, entry in self._entries.items() if entry.url == url]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
