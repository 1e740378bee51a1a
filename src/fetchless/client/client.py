"""The caching client facade.

:class:`CachingClient` composes the cache components behind a small async
API. A GET passes through these steps:

1. The request is recorded by the intelligence panel (when enabled).
2. A time-travel read (``at=``) is answered from the history store.
3. A frozen key is answered from the freeze overlay.
4. Otherwise the :class:`~fetchless.client.strategies.StrategyEngine`
   applies the chosen strategy.

POST, PUT, PATCH and DELETE go straight to the transport and never touch
the cache.

Example::

    async with CachingClient(ClientConfig(base_url="https://api.example.com")) as client:
        users = await client.get("/users", params={"page": 1})
        print(client.get_stats())
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Generator, Iterable
from typing import Any, Callable, Optional

import httpx

from fetchless.autofix import AutoFixer, AutoFixFunction
from fetchless.cache.freeze import FreezeOverlay
from fetchless.cache.history import HistoryStore, Timestamp, parse_timestamp
from fetchless.cache.persistent import PersistentStore, deserialize_entry
from fetchless.cache.store import CacheEntry, EntryStore
from fetchless.client.dedup import RequestDeduplicator
from fetchless.client.strategies import ReadRequest, StrategyEngine
from fetchless.client.transport import Transport
from fetchless.exceptions import AbortedError, InvalidUsageError, NoHistoryError
from fetchless.hooks import Interceptor
from fetchless.intelligence import FetchIntelligence
from fetchless.keys import derive_cache_key, request_url
from fetchless.models import CacheStats, CacheStrategy, ClientConfig

logger = logging.getLogger(__name__)


class AbortableRequest:
    """A GET running in its own task that can be aborted.

    Await the object for the response. :meth:`abort` cancels the shared
    network call when one is in flight, so every caller that joined it
    receives :class:`~fetchless.exceptions.AbortedError`.
    """

    def __init__(
        self,
        task: asyncio.Task[httpx.Response],
        key: str,
        dedup: Optional[RequestDeduplicator],
    ) -> None:
        self._task = task
        self._key = key
        self._dedup = dedup

    @property
    def key(self) -> str:
        """Cache key of the request."""
        return self._key

    def abort(self) -> bool:
        """Cancel the request. Returns ``False`` if it had already finished."""
        if self._task.done():
            return False
        if self._dedup is not None and self._dedup.cancel(self._key):
            return True
        return self._task.cancel()

    def done(self) -> bool:
        return self._task.done()

    def __await__(self) -> Generator[Any, None, httpx.Response]:
        return self._wait().__await__()

    async def _wait(self) -> httpx.Response:
        try:
            return await self._task
        except asyncio.CancelledError:
            if self._task.cancelled():
                raise AbortedError(f"Request for {self._key} was aborted") from None
            raise


class CachingClient:
    """In-process HTTP response cache in front of an async transport.

    Instances do not share state; create one per configuration.

    Args:
        config: Client configuration. Defaults to ``ClientConfig()``.
        transport: Pre-built :class:`Transport`. Built from *config* and
            *http_client* when omitted.
        storage: Persistent store to preload entries from and save
            fetched entries to.
        clock: Callable returning the current time in epoch seconds.
        http_client: :class:`httpx.AsyncClient` handed to the default
            transport, e.g. one wired to :class:`httpx.MockTransport`.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        transport: Optional[Transport] = None,
        storage: Optional[PersistentStore] = None,
        clock: Optional[Callable[[], float]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config or ClientConfig()
        self._clock = clock or time.time
        self._transport = transport or Transport(self._config, http_client=http_client)

        self._store = EntryStore(self._config.max_size)
        self._overlay = FreezeOverlay()
        self._history = HistoryStore(self._config.history_retention)
        self._auto_fixer = AutoFixer()
        self._intelligence = FetchIntelligence(clock=self._clock)
        self._dedup = RequestDeduplicator() if self._config.dedupe_requests else None
        self._engine = StrategyEngine(
            self._config.max_age,
            self._store,
            self._transport,
            self._auto_fixer,
            history=self._history if self._config.enable_time_travel else None,
            dedup=self._dedup,
            storage=storage,
            clock=self._clock,
        )
        self._sweeper: Optional[asyncio.Task[None]] = None

        if storage is not None:
            self._preload(storage)

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def transport(self) -> Transport:
        return self._transport

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> CachingClient:
        if self._sweeper is None:
            self._sweeper = asyncio.ensure_future(self._sweep_periodically())
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Stop the sweeper, wait for background tasks and close the transport."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweeper
            self._sweeper = None
        await self._engine.join_background_tasks()
        await self._transport.aclose()

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    async def get(
        self,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        strategy: Optional[CacheStrategy | str] = None,
        at: Optional[Timestamp] = None,
        auto_fix: Optional[AutoFixFunction] = None,
        origin: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """Read *url* through the cache.

        Args:
            url: Absolute URL, or a path relative to ``base_url``.
            params: Query parameters. Part of the cache key.
            headers: Request headers. Only authorization headers are part
                of the cache key.
            strategy: Overrides the configured strategy for this call.
            at: Instant to read from the history store instead of the
                cache (time travel).
            auto_fix: Substitution function tried when the read fails
                with no cached fallback.
            origin: Component name recorded by the intelligence panel.
            timeout: Seconds after which the network call is aborted.

        Raises:
            InvalidUsageError: If *strategy* is not a known strategy.
            InvalidTimestampError: If *at* cannot be parsed.
            NoHistoryError: If time travel is disabled or no snapshot exists.
            TransportError: If the fetch fails with no fallback.
            AbortedError: If the fetch is aborted or times out.
        """
        read = self._read_request(url, params, headers)
        chosen = self._resolve_strategy(strategy)

        if self._config.enable_intelligence_panel:
            self._intelligence.record(read.url, origin)

        if at is not None:
            return self._time_travel(read.url, at)

        frozen = self._overlay.get(read.key)
        if frozen is not None:
            self._engine.record_hit()
            logger.debug("Serving frozen entry for %s", read.key)
            return frozen.response

        return await self._engine.read(read, chosen, auto_fix=auto_fix, timeout=timeout)

    def prefetch(self, url: str, **options: Any) -> asyncio.Task[None]:
        """Warm the cache for *url* in a background task.

        *options* are passed to :meth:`get`. Failures are logged, never
        raised.
        """

        async def warm() -> None:
            try:
                await self.get(url, **options)
            except Exception:
                logger.warning("Prefetch of %s failed", url, exc_info=True)

        return self._engine.spawn(warm())

    def abortable_get(self, url: str, **options: Any) -> AbortableRequest:
        """Start a GET for *url* that can be aborted before it completes."""
        read = self._read_request(url, options.get("params"), options.get("headers"))
        task = asyncio.ensure_future(self.get(url, **options))
        return AbortableRequest(task, read.key, self._dedup)

    # ------------------------------------------------------------------ #
    # Uncached verbs
    # ------------------------------------------------------------------ #

    async def post(self, url: str, data: Any = None, **kwargs: Any) -> httpx.Response:
        """Send a POST. Never cached."""
        return await self._transport.post(url, **_body(data), **kwargs)

    async def put(self, url: str, data: Any = None, **kwargs: Any) -> httpx.Response:
        """Send a PUT. Never cached."""
        return await self._transport.put(url, **_body(data), **kwargs)

    async def patch(self, url: str, data: Any = None, **kwargs: Any) -> httpx.Response:
        """Send a PATCH. Never cached."""
        return await self._transport.patch(url, **_body(data), **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a DELETE. Never cached."""
        return await self._transport.delete(url, **kwargs)

    # ------------------------------------------------------------------ #
    # Cache management
    # ------------------------------------------------------------------ #

    def get_stats(self) -> CacheStats:
        """Hit/miss counters and the current entry store size."""
        return self._engine.stats()

    def clear_cache(self) -> None:
        """Empty the entry store and reset the counters.

        History snapshots and frozen entries are kept.
        """
        self._store.clear()
        self._engine.reset()

    def freeze(self, urls: str | Iterable[str]) -> list[str]:
        """Pin the cached entries for *urls* until they are unfrozen.

        A URL with nothing cached is skipped with a warning.

        Returns:
            The cache keys that were frozen.
        """
        if isinstance(urls, str):
            urls = [urls]

        frozen: list[str] = []
        for url in urls:
            keys = self._store.keys_for_url(url)
            if not keys:
                logger.warning("Nothing cached for %s, freeze ignored", url)
                continue
            for key in keys:
                entry = self._store.peek(key)
                if entry is not None:
                    self._overlay.freeze(entry)
                    frozen.append(key)
        return frozen

    def unfreeze(self, url: str) -> int:
        """Unpin every frozen key for *url*. Returns the number unpinned."""
        return self._overlay.unfreeze(url)

    def unfreeze_all(self) -> int:
        """Unpin every frozen key. Returns the number unpinned."""
        return self._overlay.clear()

    def is_frozen(self, url: str) -> bool:
        return self._overlay.is_frozen(url)

    def frozen_urls(self) -> list[str]:
        return self._overlay.urls()

    def get_intelligence(self) -> FetchIntelligence:
        """The request-pattern analytics recorder."""
        return self._intelligence

    def add_interceptor(self, interceptor: Interceptor) -> Callable[[], None]:
        """Register *interceptor* and return a callable that removes it."""
        return self._transport.hooks.add(interceptor)

    def pending_requests(self) -> list[str]:
        """Cache keys with a network call in flight."""
        return self._dedup.pending_keys() if self._dedup is not None else []

    async def join_background_tasks(self) -> None:
        """Wait for background refreshes and prefetches to finish."""
        await self._engine.join_background_tasks()

    def sweep(self) -> dict[str, int]:
        """Prune expired history snapshots and request-log records.

        Returns:
            The number of ``history`` snapshots and ``requests`` removed.
        """
        now = self._clock()
        removed = {
            "history": self._history.prune(now),
            "requests": self._intelligence.prune(now),
        }
        logger.debug("Sweep removed %(history)d snapshots, %(requests)d records", removed)
        return removed

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _read_request(
        self,
        url: str,
        params: Optional[dict[str, Any]],
        headers: Optional[dict[str, str]],
    ) -> ReadRequest:
        return ReadRequest(
            key=derive_cache_key(url, params, headers),
            url=request_url(url, params),
            target=url,
            params=dict(params or {}),
            headers=dict(headers or {}),
        )

    def _resolve_strategy(self, strategy: Optional[CacheStrategy | str]) -> CacheStrategy:
        if strategy is None:
            return self._config.strategy
        try:
            return CacheStrategy(strategy)
        except ValueError:
            raise InvalidUsageError(f"Unknown cache strategy: {strategy!r}") from None

    def _time_travel(self, url: str, at: Timestamp) -> httpx.Response:
        if not self._config.enable_time_travel:
            raise NoHistoryError("Time travel is not enabled for this client")
        instant = parse_timestamp(at)
        snapshot = self._history.closest(url, instant)
        if snapshot is None:
            raise NoHistoryError(f"No history recorded for {url}")
        logger.debug("Time travel to %s for %s", instant, url)
        return snapshot.response

    def _preload(self, storage: PersistentStore) -> None:
        now = self._clock()
        try:
            keys = list(storage.keys())
        except Exception:
            logger.warning("Could not list persisted entries", exc_info=True)
            return

        entries: list[CacheEntry] = []
        for key in keys:
            try:
                data = storage.get(key)
                if data is None:
                    continue
                entry = deserialize_entry(data)
            except Exception:
                logger.warning("Skipping unreadable persisted entry %s", key, exc_info=True)
                continue
            if now - entry.stored_at < self._config.max_age:
                entries.append(entry)

        for entry in sorted(entries, key=lambda e: e.stored_at):
            self._store.set(entry.key, entry)
        logger.debug("Preloaded %d of %d persisted entries", len(entries), len(keys))

    async def _sweep_periodically(self) -> None:
        while True:
            await asyncio.sleep(self._config.sweep_interval)
            self.sweep()


def _body(data: Any) -> dict[str, Any]:
    if data is None:
        return {}
    if isinstance(data, (str, bytes)):
        return {"content": data}
    return {"json": data}


def create_client(
    *,
    transport: Optional[Transport] = None,
    storage: Optional[PersistentStore] = None,
    clock: Optional[Callable[[], float]] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    **options: Any,
) -> CachingClient:
    """Build a :class:`CachingClient` from keyword options.

    *options* are :class:`~fetchless.models.ClientConfig` fields; an unknown
    option raises :class:`pydantic.ValidationError`.

    Example::

        client = create_client(strategy="network-first", max_age=60)
    """
    return CachingClient(
        ClientConfig(**options),
        transport=transport,
        storage=storage,
        clock=clock,
        http_client=http_client,
    )
