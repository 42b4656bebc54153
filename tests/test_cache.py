import asyncio

import pytest

from patienthub.storage.cache import (
    CachedResource, CacheKeys, TTLCache, optimistic_update, prefetch,
)


def run(coro):
    return asyncio.run(coro)


class TestTTLCache:

    def test_value_visible_until_ttl_elapses(self, clock):
        cache = TTLCache(ttl=10, max_size=5, clock=clock)
        cache.set("patients:1", ["Jean"])

        clock.advance(9.5)
        assert cache.get("patients:1") == ["Jean"]

        clock.advance(0.5)
        assert cache.get("patients:1") is None
        assert "patients:1" not in cache

    def test_expired_entry_is_removed_lazily(self, clock):
        cache = TTLCache(ttl=1, max_size=5, clock=clock)
        cache.set("a", 1)
        clock.advance(5)
        assert len(cache) == 1
        assert not cache.has("a")
        assert len(cache) == 0

    def test_size_never_exceeds_max_size(self, clock):
        cache = TTLCache(ttl=100, max_size=10, clock=clock)
        for i in range(50):
            cache.set(f"key:{i}", i)
            clock.advance(0.01)
            assert len(cache) <= 10

    def test_full_cache_evicts_oldest_fifth(self, clock):
        cache = TTLCache(ttl=100, max_size=10, clock=clock)
        for i in range(10):
            cache.set(f"key:{i}", i)
            clock.advance(1)

        cache.set("key:new", "new")

        assert cache.get("key:0") is None
        assert cache.get("key:1") is None
        assert cache.get("key:2") == 2
        assert cache.get("key:new") == "new"
        assert len(cache) == 9

    def test_small_cache_still_evicts_one_entry(self, clock):
        cache = TTLCache(ttl=100, max_size=2, clock=clock)
        cache.set("a", 1)
        clock.advance(1)
        cache.set("b", 2)
        clock.advance(1)
        cache.set("c", 3)
        assert len(cache) == 2
        assert cache.get("a") is None

    def test_full_cache_sweeps_expired_before_evicting(self, clock):
        cache = TTLCache(ttl=10, max_size=3, clock=clock)
        cache.set("old", 1)
        clock.advance(8)
        cache.set("b", 2)
        cache.set("c", 3)
        clock.advance(3)

        cache.set("d", 4)

        assert cache.get("old") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3
        assert cache.get("d") == 4

    def test_overwriting_key_does_not_evict(self, clock):
        cache = TTLCache(ttl=100, max_size=2, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)
        assert cache.get("a") == 10
        assert cache.get("b") == 2

    def test_invalidate_pattern_matches_list_and_detail_keys(self):
        cache = TTLCache(ttl=100, max_size=10)
        cache.set(CacheKeys.patients(1), [])
        cache.set(CacheKeys.patient(3), {})
        cache.set(CacheKeys.appointments(1), [])

        removed = cache.invalidate_pattern(CacheKeys.entity_pattern("patients"))

        assert removed == 2
        assert cache.get(CacheKeys.appointments(1)) == []
        assert cache.get(CacheKeys.patient(3)) is None

    def test_stats_track_hits_and_misses(self):
        cache = TTLCache(ttl=100, max_size=10)
        cache.set("a", 1)
        cache.get("a")
        cache.get("missing")

        stats = cache.get_stats()
        assert stats["size"] == 1
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 50.0

    def test_max_size_must_be_positive(self):
        with pytest.raises(ValueError):
            TTLCache(max_size=0)


class TestCachedResource:

    def test_second_fetch_is_served_from_cache(self):
        cache = TTLCache(ttl=100, max_size=10)
        calls = []

        async def fetcher():
            calls.append(1)
            return ["Jean"]

        async def scenario():
            resource = CachedResource("patients:1", fetcher, cache=cache)
            await resource.fetch()
            result = await resource.fetch()
            return resource, result

        resource, result = run(scenario())
        assert result == ["Jean"]
        assert len(calls) == 1
        assert resource.is_from_cache

    def test_refetch_bypasses_cache(self):
        cache = TTLCache(ttl=100, max_size=10)
        cache.set("patients:1", ["stale"])

        async def fetcher():
            return ["fresh"]

        resource = CachedResource("patients:1", fetcher, cache=cache)
        assert run(resource.refetch()) == ["fresh"]
        assert cache.get("patients:1") == ["fresh"]

    def test_disabled_resource_does_not_fetch(self):
        async def fetcher():
            raise AssertionError("should not be called")

        resource = CachedResource("k", fetcher, cache=TTLCache(), enabled=False)
        assert run(resource.fetch()) is None

    def test_failure_is_recorded_and_reraised(self):
        cache = TTLCache(ttl=100, max_size=10)

        async def fetcher():
            raise RuntimeError("backend down")

        resource = CachedResource("k", fetcher, cache=cache)
        resource.data = ["previous"]
        with pytest.raises(RuntimeError):
            run(resource.fetch())

        assert isinstance(resource.error, RuntimeError)
        assert resource.data is None
        assert not resource.loading
        assert cache.get("k") is None

    def test_new_fetch_cancels_superseded_one(self):
        cache = TTLCache(ttl=100, max_size=10)
        calls = []

        async def scenario():
            started = asyncio.Event()

            async def fetcher():
                calls.append(1)
                if len(calls) == 1:
                    started.set()
                    await asyncio.sleep(1)
                    return "first"
                return "second"

            resource = CachedResource("k", fetcher, cache=cache)
            first = asyncio.ensure_future(resource.fetch(force_refresh=True))
            await started.wait()
            second = await resource.fetch(force_refresh=True)
            return await first, second

        first, second = run(scenario())
        assert first is None
        assert second == "second"
        assert cache.get("k") == "second"

    def test_cache_hit_after_superseded_fetch_clears_loading(self):
        cache = TTLCache(ttl=100, max_size=10)

        async def scenario():
            started = asyncio.Event()

            async def slow_fetcher():
                started.set()
                await asyncio.sleep(1)
                return ["slow"]

            resource = CachedResource("k", slow_fetcher, cache=cache)
            pending = asyncio.ensure_future(resource.fetch())
            await started.wait()
            assert resource.loading

            cache.set("k", ["warm"])
            data = await resource.fetch()
            await pending
            return resource, data

        resource, data = run(scenario())
        assert data == ["warm"]
        assert resource.loading is False
        assert resource.is_from_cache is True

    def test_cancel_clears_loading(self):
        cache = TTLCache(ttl=100, max_size=10)

        async def scenario():
            started = asyncio.Event()

            async def slow_fetcher():
                started.set()
                await asyncio.sleep(1)
                return "slow"

            resource = CachedResource("k", slow_fetcher, cache=cache)
            pending = asyncio.ensure_future(resource.fetch())
            await started.wait()
            resource.cancel()
            return resource, await pending

        resource, result = run(scenario())
        assert result is None
        assert resource.loading is False
        assert cache.get("k") is None

    def test_independent_resources_each_fetch_cold_key(self):
        cache = TTLCache(ttl=100, max_size=10)
        calls = []

        async def fetcher():
            calls.append(1)
            await asyncio.sleep(0)
            return "value"

        async def scenario():
            a = CachedResource("k", fetcher, cache=cache)
            b = CachedResource("k", fetcher, cache=cache)
            await asyncio.gather(a.fetch(), b.fetch())

        run(scenario())
        assert len(calls) == 2


class TestCacheHelpers:

    def test_prefetch_only_loads_missing_keys(self):
        cache = TTLCache(ttl=100, max_size=10)
        cache.set("present", "cached")

        async def fetcher():
            return "loaded"

        run(prefetch("present", fetcher, cache=cache))
        run(prefetch("absent", fetcher, cache=cache))

        assert cache.get("present") == "cached"
        assert cache.get("absent") == "loaded"

    def test_prefetch_swallows_fetch_errors(self):
        cache = TTLCache(ttl=100, max_size=10)

        async def fetcher():
            raise RuntimeError("boom")

        run(prefetch("k", fetcher, cache=cache))
        assert cache.get("k") is None

    def test_optimistic_update_keeps_server_result(self):
        cache = TTLCache(ttl=100, max_size=10)
        cache.set("patient:1", {"first_name": "Jean"})

        async def update():
            return {"first_name": "Jeanne", "updated_at": "now"}

        result = run(optimistic_update("patient:1", {"first_name": "Jeanne"}, update, cache=cache))
        assert result["updated_at"] == "now"
        assert cache.get("patient:1") == result

    def test_optimistic_update_restores_previous_value_on_failure(self):
        cache = TTLCache(ttl=100, max_size=10)
        cache.set("patient:1", {"first_name": "Jean"})

        async def update():
            assert cache.get("patient:1") == {"first_name": "Jeanne"}
            raise RuntimeError("rejected")

        with pytest.raises(RuntimeError):
            run(optimistic_update("patient:1", {"first_name": "Jeanne"}, update, cache=cache))
        assert cache.get("patient:1") == {"first_name": "Jean"}

    def test_optimistic_update_drops_new_key_on_failure(self):
        cache = TTLCache(ttl=100, max_size=10)

        async def update():
            raise RuntimeError("rejected")

        with pytest.raises(RuntimeError):
            run(optimistic_update("patient:9", {"first_name": "X"}, update, cache=cache))
        assert "patient:9" not in cache
