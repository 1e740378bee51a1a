"""Freeze overlay pinning cache entries regardless of expiry."""

from __future__ import annotations

import logging
from typing import Optional

from fetchless.cache.store import CacheEntry

logger = logging.getLogger(__name__)


class FreezeOverlay:
    """Cache key to frozen :class:`CacheEntry` mapping.

    A frozen entry shadows the entry store for its key until it is
    unfrozen. It is a snapshot: later writes to the entry store do not
    change what a frozen key returns.
    """

    def __init__(self) -> None:
        self._frozen: dict[str, CacheEntry] = {}

    def freeze(self, entry: CacheEntry) -> None:
        """Pin *entry* under its key."""
        self._frozen[entry.key] = entry
        logger.debug("Froze %s", entry.key)

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the frozen entry for *key*, if any."""
        return self._frozen.get(key)

    def unfreeze(self, url: str) -> int:
        """Remove every frozen entry for the logical *url*.

        Returns:
            The number of keys unfrozen.
        """
        keys = [key for key, entry in self._frozen.items() if entry.url == url]
        for key in keys:
            del self._frozen[key]
        if keys:
            logger.debug("Unfroze %d key(s) for %s", len(keys), url)
        return len(keys)

    def clear(self) -> int:
        """Remove every frozen entry. Returns the number removed."""
        count = len(self._frozen)
        self._frozen.clear()
        return count

    def is_frozen(self, url: str) -> bool:
        """Return ``True`` if any key for *url* is frozen."""
        return any(entry.url == url for entry in self._frozen.values())

    def urls(self) -> list[str]:
        """Distinct URLs with at least one frozen key, in freeze order."""
        return list(dict.fromkeys(entry.url for entry in self._frozen.values()))

    def __len__(self) -> int:
        return len(self._frozen)
