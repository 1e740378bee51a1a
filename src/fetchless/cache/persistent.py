"""Persistent backing for the entry store.

A :class:`~fetchless.client.CachingClient` given a persistent store preloads
non-expired entries from it at construction and saves every response it
fetches from the network. The store only ever sees serialised entries
(plain dicts of primitives), never live :class:`httpx.Response` objects.

:class:`DiskStore` is the bundled implementation, using :mod:`diskcache` to
keep entries in a directory on the filesystem. Any object with ``get``,
``set`` and ``keys`` methods satisfies :class:`PersistentStore`.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any, Optional, Protocol

import diskcache
import httpx

from fetchless.cache.store import CacheEntry

_KEY_PREFIX = "fetchless:"

# Bodies are stored decoded, so encoding and framing headers no longer apply.
_DROPPED_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding"})


class PersistentStore(Protocol):
    """Key-value store the client preloads from and saves to."""

    def get(self, key: str) -> Optional[dict[str, Any]]: ...

    def set(self, key: str, value: dict[str, Any]) -> None: ...

    def keys(self) -> Iterable[str]: ...


def serialize_entry(entry: CacheEntry) -> dict[str, Any]:
    """Convert *entry* to a dict of primitives suitable for storage."""
    response = entry.response
    return {
        "key": entry.key,
        "url": entry.url,
        "stored_at": entry.stored_at,
        "status_code": response.status_code,
        "headers": [
            [name, value]
            for name, value in response.headers.multi_items()
            if name.lower() not in _DROPPED_HEADERS
        ],
        "content": response.content,
    }


def deserialize_entry(data: dict[str, Any]) -> CacheEntry:
    """Rebuild a :class:`CacheEntry` from :func:`serialize_entry` output.

    Raises:
        KeyError: If a required field is missing.
    """
    response = httpx.Response(
        status_code=data["status_code"],
        headers=[(name, value) for name, value in data.get("headers", [])],
        content=data.get("content", b""),
    )
    return CacheEntry(
        key=data["key"],
        url=data["url"],
        response=response,
        stored_at=float(data["stored_at"]),
    )


class DiskStore:
    """Directory-backed persistent store built on :class:`diskcache.Cache`.

    Args:
        directory: Root directory for the store. A ``responses/``
            subdirectory is created inside it.

    Example::

        from fetchless import CachingClient
        from fetchless.cache import DiskStore

        store = DiskStore("/tmp/fetchless")
        client = CachingClient(storage=store)
    """

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory) / "responses"
        self._cache: Optional[diskcache.Cache] = diskcache.Cache(str(self._directory))

    @property
    def directory(self) -> Path:
        """Directory holding the underlying :class:`diskcache.Cache`."""
        return self._directory

    def get(self, key: str) -> Optional[dict[str, Any]]:
        """Return the serialised entry stored under *key*, or ``None``."""
        return self._require().get(_KEY_PREFIX + key)

    def set(self, key: str, value: dict[str, Any]) -> None:
        """Store the serialised entry *value* under *key*."""
        self._require().set(_KEY_PREFIX + key, value)

    def keys(self) -> list[str]:
        """Cache keys of every stored entry."""
        return [
            key[len(_KEY_PREFIX):]
            for key in self._require().iterkeys()
            if isinstance(key, str) and key.startswith(_KEY_PREFIX)
        ]

    def delete(self, key: str) -> bool:
        """Remove the entry stored under *key*. Returns ``True`` if it existed."""
        return bool(self._require().delete(_KEY_PREFIX + key))

    def clear(self) -> int:
        """Remove every entry. Returns the number of entries removed."""
        return self._require().clear()

    def stats(self) -> dict[str, Any]:
        """Return ``size`` (number of entries) and ``directory`` (str path)."""
        return {
            "size": len(self.keys()),
            "directory": str(self._directory),
        }

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        if self._cache is not None:
            self._cache.close()
            self._cache = None

    def _require(self) -> diskcache.Cache:
        if self._cache is None:
            raise RuntimeError("DiskStore is closed")
        return self._cache

    def __len__(self) -> int:
        return len(self.keys())
