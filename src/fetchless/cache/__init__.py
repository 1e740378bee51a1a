"""Cache state owned by a :class:`~fetchless.client.CachingClient`.

This package holds the keyed structures the strategy engine reads and
writes:

* :class:`EntryStore` -- bounded LRU mapping of cache keys to
  :class:`CacheEntry` records.
* :class:`HistoryStore` -- per-URL snapshot log for time-travel reads.
* :class:`FreezeOverlay` -- frozen entries that shadow the entry store.
* :class:`DiskStore` -- optional :mod:`diskcache` backing used to preload
  and save entries across processes.
"""

from fetchless.cache.freeze import FreezeOverlay
from fetchless.cache.history import HistorySnapshot, HistoryStore, parse_timestamp
from fetchless.cache.persistent import (
    DiskStore,
    PersistentStore,
    deserialize_entry,
    serialize_entry,
)
from fetchless.cache.store import CacheEntry, EntryStore

__all__ = [
    "CacheEntry",
    "DiskStore",
    "EntryStore",
    "FreezeOverlay",
    "HistorySnapshot",
    "HistoryStore",
    "PersistentStore",
    "deserialize_entry",
    "parse_timestamp",
    "serialize_entry",
]
