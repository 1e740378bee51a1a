"""Tests for the CachingClient facade: freeze, time travel, verbs and lifecycle."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from fetchless import create_client
from fetchless.cache import DiskStore
from fetchless.exceptions import InvalidTimestampError, NoHistoryError
from fetchless.hooks import Interceptor


def _iso(epoch: float) -> str:
    return datetime.fromtimestamp(epoch, tz=timezone.utc).isoformat().replace("+00:00", "Z")


# ------------------------------------------------------------------ #
# Freeze
# ------------------------------------------------------------------ #


class TestFreeze:
    @pytest.mark.asyncio
    async def test_frozen_value_served_without_network(self, make_client, server, clock) -> None:
        client = make_client(max_age=5)
        original = await client.get("/users")

        assert client.freeze("/users") == ["/users"]
        clock.advance(3600)
        for strategy in ("cache-first", "network-first", "stale-while-revalidate"):
            assert await client.get("/users", strategy=strategy) is original

        assert server.count == 1
        assert client.get_stats().hits == 3
        assert client.is_frozen("/users")

    @pytest.mark.asyncio
    async def test_unfreeze_restores_normal_reads(self, make_client, server, clock) -> None:
        client = make_client(max_age=5)
        await client.get("/users")
        client.freeze("/users")
        clock.advance(60)

        assert client.unfreeze("/users") == 1
        response = await client.get("/users")

        assert response.json()["call"] == 2
        assert not client.is_frozen("/users")

    @pytest.mark.asyncio
    async def test_frozen_entry_survives_eviction(self, make_client, server) -> None:
        client = make_client(max_size=1)
        first = await client.get("/a")
        client.freeze("/a")
        await client.get("/b")

        assert await client.get("/a") is first
        assert server.count == 2

    @pytest.mark.asyncio
    async def test_freeze_without_cached_value_is_noop(self, make_client, server, caplog) -> None:
        client = make_client()
        assert client.freeze("/never-fetched") == []
        assert client.frozen_urls() == []
        assert "freeze ignored" in caplog.text

        await client.get("/never-fetched")
        assert server.count == 1

    @pytest.mark.asyncio
    async def test_freeze_list_and_unfreeze_all(self, make_client, server) -> None:
        client = make_client()
        await client.get("/a")
        await client.get("/b", params={"page": 2})

        frozen = client.freeze(["/a", "/b?page=2"])

        assert len(frozen) == 2
        assert client.frozen_urls() == ["/a", "/b?page=2"]
        assert client.unfreeze_all() == 2
        assert client.frozen_urls() == []

    @pytest.mark.asyncio
    async def test_clear_cache_keeps_frozen_entries(self, make_client, server) -> None:
        client = make_client()
        original = await client.get("/users")
        client.freeze("/users")
        client.clear_cache()

        assert await client.get("/users") is original
        assert server.count == 1


# ------------------------------------------------------------------ #
# Time travel
# ------------------------------------------------------------------ #


class TestTimeTravel:
    @pytest.mark.asyncio
    async def test_resolves_closest_snapshot(self, make_client, server, clock) -> None:
        client = make_client(enable_time_travel=True, max_age=5)
        t1 = clock()
        await client.get("/users")
        clock.advance(100)
        t2 = clock()
        await client.get("/users")

        assert (await client.get("/users", at=t1 + 10)).json()["call"] == 1
        assert (await client.get("/users", at=_iso(t2 - 10))).json()["call"] == 2
        assert (await client.get("/users", at=t1 + 50)).json()["call"] == 1
        assert server.count == 2

    @pytest.mark.asyncio
    async def test_accepts_datetime(self, make_client, server, clock) -> None:
        client = make_client(enable_time_travel=True)
        await client.get("/users")
        moment = datetime.fromtimestamp(clock(), tz=timezone.utc)
        assert (await client.get("/users", at=moment)).json()["call"] == 1

    @pytest.mark.asyncio
    async def test_disabled_always_fails(self, make_client, server, clock) -> None:
        client = make_client()
        await client.get("/users")
        with pytest.raises(NoHistoryError):
            await client.get("/users", at=clock())
        with pytest.raises(NoHistoryError):
            await client.get("/users", at="not a timestamp")

    @pytest.mark.asyncio
    async def test_no_snapshots_fails(self, make_client, clock) -> None:
        client = make_client(enable_time_travel=True)
        with pytest.raises(NoHistoryError):
            await client.get("/users", at=clock())

    @pytest.mark.asyncio
    async def test_malformed_timestamp(self, make_client, server) -> None:
        client = make_client(enable_time_travel=True)
        await client.get("/users")
        with pytest.raises(InvalidTimestampError):
            await client.get("/users", at="last tuesday")

    @pytest.mark.asyncio
    async def test_not_counted_and_ignores_freeze(self, make_client, server, clock) -> None:
        client = make_client(enable_time_travel=True, max_age=5)
        t1 = clock()
        await client.get("/users")
        clock.advance(10)
        await client.get("/users")
        client.freeze("/users")
        before = client.get_stats()

        response = await client.get("/users", at=t1)

        assert response.json()["call"] == 1
        after = client.get_stats()
        assert (after.hits, after.misses) == (before.hits, before.misses)

    @pytest.mark.asyncio
    async def test_history_is_per_url_with_params(self, make_client, server, clock) -> None:
        client = make_client(enable_time_travel=True)
        await client.get("/users", params={"page": 1})
        with pytest.raises(NoHistoryError):
            await client.get("/users", params={"page": 2}, at=clock())
        response = await client.get("/users", params={"page": 1}, at=clock())
        assert response.json()["query"] == {"page": "1"}

    @pytest.mark.asyncio
    async def test_history_survives_clear_cache(self, make_client, server, clock) -> None:
        client = make_client(enable_time_travel=True)
        await client.get("/users")
        client.clear_cache()
        assert (await client.get("/users", at=clock())).json()["call"] == 1


# ------------------------------------------------------------------ #
# Stats and uncached verbs
# ------------------------------------------------------------------ #


class TestStatsAndVerbs:
    @pytest.mark.asyncio
    async def test_clear_cache_resets_counters(self, make_client, server) -> None:
        client = make_client()
        await client.get("/users")
        await client.get("/users")
        client.clear_cache()

        stats = client.get_stats()
        assert (stats.hits, stats.misses, stats.size, stats.ratio) == (0, 0, 0, 0.0)

        await client.get("/users")
        assert server.count == 2

    @pytest.mark.asyncio
    async def test_size_bounded_by_max_size(self, make_client, server) -> None:
        client = make_client(max_size=2)
        for path in ("/a", "/b", "/c"):
            await client.get(path)
        assert client.get_stats().size == 2

        await client.get("/a")
        assert server.count == 4

    @pytest.mark.asyncio
    async def test_write_verbs_are_never_cached(self, make_client, server) -> None:
        client = make_client()
        await client.post("/users", {"name": "ada"})
        await client.post("/users", {"name": "ada"})
        await client.put("/users/1", {"name": "ada"})
        await client.patch("/users/1", {"name": "grace"})
        await client.delete("/users/1")

        assert server.count == 5
        assert [r.method for r in server.requests] == ["POST", "POST", "PUT", "PATCH", "DELETE"]
        stats = client.get_stats()
        assert (stats.hits, stats.misses, stats.size) == (0, 0, 0)

    @pytest.mark.asyncio
    async def test_write_does_not_invalidate_reads(self, make_client, server) -> None:
        client = make_client()
        await client.get("/users")
        await client.post("/users", {"name": "ada"})
        await client.get("/users")
        assert [r.method for r in server.requests] == ["GET", "POST"]


# ------------------------------------------------------------------ #
# Interceptors and prefetch
# ------------------------------------------------------------------ #


class TestInterceptorsAndPrefetch:
    @pytest.mark.asyncio
    async def test_add_interceptor_and_remove(self, make_client, server) -> None:
        class Stamp(Interceptor):
            def on_pre_request(self, method, url, headers, params):
                headers["X-Stamp"] = "1"
                return None

        client = make_client()
        remove = client.add_interceptor(Stamp())
        await client.get("/a")
        remove()
        await client.get("/b")

        assert server.requests[0].headers.get("x-stamp") == "1"
        assert "x-stamp" not in server.requests[1].headers

    @pytest.mark.asyncio
    async def test_prefetch_warms_cache(self, make_client, server) -> None:
        client = make_client()
        task = client.prefetch("/users", params={"page": 1})
        await task

        await client.get("/users", params={"page": 1})
        assert server.count == 1

    @pytest.mark.asyncio
    async def test_prefetch_failure_is_logged(self, make_client, server, caplog) -> None:
        client = make_client()
        server.status = 500
        await client.prefetch("/users")
        assert "Prefetch of /users failed" in caplog.text


# ------------------------------------------------------------------ #
# Persistent storage
# ------------------------------------------------------------------ #


class TestPersistentStorage:
    @pytest.mark.asyncio
    async def test_fetched_entries_are_saved_and_preloaded(
        self, make_client, server, clock, tmp_path
    ) -> None:
        store = DiskStore(tmp_path)
        try:
            first = make_client(storage=store)
            await first.get("/users")
            assert store.keys() == ["/users"]

            clock.advance(10)
            second = make_client(storage=store)
            assert second.get_stats().size == 1
            response = await second.get("/users")

            assert response.json()["call"] == 1
            assert server.count == 1
        finally:
            store.close()

    @pytest.mark.asyncio
    async def test_expired_entries_are_not_preloaded(
        self, make_client, server, clock, tmp_path
    ) -> None:
        store = DiskStore(tmp_path)
        try:
            await make_client(storage=store, max_age=5).get("/users")
            clock.advance(5)
            second = make_client(storage=store, max_age=5)
            assert second.get_stats().size == 0
        finally:
            store.close()

    @pytest.mark.asyncio
    async def test_storage_failures_never_fail_reads(self, make_client, server, caplog) -> None:
        class BrokenStore:
            def keys(self):
                raise OSError("disk gone")

            def get(self, key):
                raise OSError("disk gone")

            def set(self, key, value):
                raise OSError("disk gone")

        client = make_client(storage=BrokenStore())
        response = await client.get("/users")

        assert response.status_code == 200
        assert "Could not persist" in caplog.text


# ------------------------------------------------------------------ #
# Lifecycle and maintenance
# ------------------------------------------------------------------ #


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_sweep_prunes_history_and_request_log(self, make_client, server, clock) -> None:
        client = make_client(
            enable_time_travel=True,
            enable_intelligence_panel=True,
            history_retention=100,
        )
        await client.get("/users")
        clock.advance(25 * 3600)

        removed = client.sweep()

        assert removed == {"history": 1, "requests": 1}
        with pytest.raises(NoHistoryError):
            await client.get("/users", at=clock())

    @pytest.mark.asyncio
    async def test_context_manager_runs_periodic_sweep(self, make_client, server, clock) -> None:
        async with make_client(
            enable_time_travel=True, history_retention=100, sweep_interval=0.01
        ) as client:
            await client.get("/users")
            clock.advance(1000)
            await asyncio.sleep(0.1)
            with pytest.raises(NoHistoryError):
                await client.get("/users", at=clock())

    @pytest.mark.asyncio
    async def test_exit_waits_for_background_refresh(self, make_client, server, clock) -> None:
        async with make_client(strategy="stale-while-revalidate", max_age=5) as client:
            await client.get("/users")
            clock.advance(10)
            server.delay = 0.01
            await client.get("/users")
        assert server.count == 2

    @pytest.mark.asyncio
    async def test_create_client_builds_config(self) -> None:
        client = create_client(strategy="network-first", max_age=42)
        assert client.config.strategy.value == "network-first"
        assert client.config.max_age == 42
        await client.aclose()
