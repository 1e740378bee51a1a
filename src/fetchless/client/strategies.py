"""Read strategies for cached GET requests.

:class:`StrategyEngine` applies one of the three :class:`CacheStrategy`
policies to a :class:`ReadRequest`, consulting the entry store, fetching
through the deduplication layer, and writing fresh responses back:

* ``cache-first`` serves a fresh entry; otherwise fetches.
* ``network-first`` always fetches; on a transport failure it falls back to
  any cached entry for the key, however old.
* ``stale-while-revalidate`` serves any cached entry at once and, when it
  has expired, refreshes it in a background task.

When a fetch fails and no fallback applies, the caller's auto-fix function
(if any) gets a chance to substitute a response.

Each read counts exactly one outcome: a hit when it is answered from the
cache, a miss when its answer depends on a network attempt. Background
refreshes are not counted.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

import httpx

from fetchless.autofix import AutoFixer, AutoFixFunction
from fetchless.cache.history import HistoryStore
from fetchless.cache.persistent import PersistentStore, serialize_entry
from fetchless.cache.store import CacheEntry, EntryStore
from fetchless.client.dedup import RequestDeduplicator
from fetchless.client.transport import Transport
from fetchless.exceptions import AbortedError, TransportError
from fetchless.models import CacheStats, CacheStrategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadRequest:
    """A GET request as seen by the strategy engine.

    Attributes:
        key: Cache key (see :func:`~fetchless.keys.derive_cache_key`).
        url: Logical URL with query parameters encoded. History,
            last-successful responses and freeze lookups use this value.
        target: URL passed to the transport, without *params* applied.
        params: Query parameters passed to the transport.
        headers: Request headers passed to the transport.
    """

    key: str
    url: str
    target: str
    params: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)


class StrategyEngine:
    """Applies read strategies against an :class:`EntryStore`.

    Args:
        max_age: Seconds after which an entry counts as expired.
        store: The entry store to read and write.
        transport: Network collaborator.
        auto_fixer: Tracks last successful responses and runs substitutions.
        history: Snapshot store to append to on each fetch, or ``None``
            when time travel is disabled.
        dedup: Deduplication layer, or ``None`` to send every fetch.
        storage: Persistent store every fetched entry is saved to.
        clock: Callable returning the current time in epoch seconds.
    """

    def __init__(
        self,
        max_age: float,
        store: EntryStore,
        transport: Transport,
        auto_fixer: AutoFixer,
        history: Optional[HistoryStore] = None,
        dedup: Optional[RequestDeduplicator] = None,
        storage: Optional[PersistentStore] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._max_age = max_age
        self._store = store
        self._transport = transport
        self._auto_fixer = auto_fixer
        self._history = history
        self._dedup = dedup
        self._storage = storage
        self._clock = clock or time.time
        self._hits = 0
        self._misses = 0
        self._refreshing: set[str] = set()
        self._background: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------ #
    # Statistics
    # ------------------------------------------------------------------ #

    def record_hit(self) -> None:
        """Count a read answered without consulting the strategies (frozen keys)."""
        self._hits += 1

    def stats(self) -> CacheStats:
        """Return the counters and the store's current size."""
        total = self._hits + self._misses
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            ratio=self._hits / total if total else 0.0,
            size=self._store.size(),
        )

    def reset(self) -> None:
        """Zero the hit and miss counters."""
        self._hits = 0
        self._misses = 0

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    async def read(
        self,
        request: ReadRequest,
        strategy: CacheStrategy,
        auto_fix: Optional[AutoFixFunction] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """Answer *request* under *strategy*.

        Raises:
            TransportError: When the fetch fails and neither a cached
                fallback nor an auto-fix substitution is available.
            AbortedError: When the fetch was aborted or *timeout* elapsed.
        """
        if strategy is CacheStrategy.NETWORK_FIRST:
            return await self._network_first(request, auto_fix, timeout)
        if strategy is CacheStrategy.STALE_WHILE_REVALIDATE:
            return await self._stale_while_revalidate(request, auto_fix, timeout)
        return await self._cache_first(request, auto_fix, timeout)

    async def _cache_first(
        self,
        request: ReadRequest,
        auto_fix: Optional[AutoFixFunction],
        timeout: Optional[float],
    ) -> httpx.Response:
        entry = self._store.get(request.key)
        if entry is not None and not entry.is_expired(self._clock(), self._max_age):
            self._hits += 1
            logger.debug("Cache hit for %s", request.key)
            return entry.response

        self._misses += 1
        logger.debug("Cache miss for %s", request.key)
        return await self._fetch_or_fix(request, auto_fix, timeout)

    async def _network_first(
        self,
        request: ReadRequest,
        auto_fix: Optional[AutoFixFunction],
        timeout: Optional[float],
    ) -> httpx.Response:
        try:
            response = await self._fetch(request, timeout)
        except TransportError as error:
            fallback = self._store.get(request.key)
            if fallback is not None:
                self._hits += 1
                logger.debug("Network failed for %s, serving cached entry", request.key)
                return fallback.response
            self._misses += 1
            return self._fix_or_raise(error, request, auto_fix)
        except AbortedError:
            self._misses += 1
            raise

        self._misses += 1
        return response

    async def _stale_while_revalidate(
        self,
        request: ReadRequest,
        auto_fix: Optional[AutoFixFunction],
        timeout: Optional[float],
    ) -> httpx.Response:
        entry = self._store.get(request.key)
        if entry is None:
            self._misses += 1
            logger.debug("Cache miss for %s", request.key)
            return await self._fetch_or_fix(request, auto_fix, timeout)

        self._hits += 1
        if entry.is_expired(self._clock(), self._max_age):
            logger.debug("Serving stale entry for %s", request.key)
            self._revalidate(request)
        return entry.response

    # ------------------------------------------------------------------ #
    # Background tasks
    # ------------------------------------------------------------------ #

    def spawn(self, coro: Awaitable[Any]) -> asyncio.Task[Any]:
        """Run *coro* as a tracked background task."""
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def join_background_tasks(self) -> None:
        """Wait for every background refresh and prefetch to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def background_count(self) -> int:
        """Number of background tasks still running."""
        return len(self._background)

    def _revalidate(self, request: ReadRequest) -> None:
        if request.key in self._refreshing:
            return
        self._refreshing.add(request.key)
        self.spawn(self._refresh(request))

    async def _refresh(self, request: ReadRequest) -> None:
        try:
            await self._fetch(request, None)
            logger.debug("Background refresh of %s completed", request.key)
        except Exception:
            logger.warning("Background refresh of %s failed", request.url, exc_info=True)
        finally:
            self._refreshing.discard(request.key)

    # ------------------------------------------------------------------ #
    # Fetching
    # ------------------------------------------------------------------ #

    async def _fetch_or_fix(
        self,
        request: ReadRequest,
        auto_fix: Optional[AutoFixFunction],
        timeout: Optional[float],
    ) -> httpx.Response:
        try:
            return await self._fetch(request, timeout)
        except TransportError as error:
            return self._fix_or_raise(error, request, auto_fix)

    def _fix_or_raise(
        self,
        error: TransportError,
        request: ReadRequest,
        auto_fix: Optional[AutoFixFunction],
    ) -> httpx.Response:
        history = self._history.responses(request.url) if self._history is not None else []
        fixed = self._auto_fixer.try_fix(error, request.url, auto_fix, history)
        if fixed is None:
            raise error
        return fixed

    async def _fetch(self, request: ReadRequest, timeout: Optional[float]) -> httpx.Response:
        """Fetch *request* from the network, sharing in-flight calls per key.

        The store writes run inside the shared operation, so they happen
        once per network call no matter how many callers joined it.
        """

        async def operation() -> httpx.Response:
            call = self._transport.get(
                request.target,
                params=request.params or None,
                headers=request.headers or None,
            )
            if timeout is None:
                response = await call
            else:
                try:
                    response = await asyncio.wait_for(call, timeout)
                except asyncio.TimeoutError:
                    raise AbortedError(
                        f"Request for {request.url} timed out after {timeout}s"
                    ) from None
            self._remember(request, response)
            return response

        if self._dedup is None:
            return await operation()
        return await self._dedup.run(request.key, operation)

    def _remember(self, request: ReadRequest, response: httpx.Response) -> None:
        now = self._clock()
        entry = CacheEntry(key=request.key, url=request.url, response=response, stored_at=now)
        self._store.set(request.key, entry)
        if self._history is not None:
            self._history.record(request.url, response, now)
        self._auto_fixer.register_success(request.url, response)

        if self._storage is not None:
            try:
                self._storage.set(request.key, serialize_entry(entry))
            except Exception:
                logger.warning("Could not persist entry for %s", request.key, exc_info=True)
