import pytest

from snapybara.core.exceptions import CacheBackendError, UpstreamError
from snapybara.services.cache_store import (
    CacheStore,
    CacheTier,
    MemoryCacheBackend,
    RedisCacheBackend,
)


class FailingBackend:
    name = "redis"

    async def get(self, key):
        raise CacheBackendError("connection refused")

    async def set(self, key, value, ttl):
        raise CacheBackendError("connection refused")

    async def delete(self, *keys):
        raise CacheBackendError("connection refused")

    async def add_to_index(self, key, member, ttl):
        raise CacheBackendError("connection refused")

    async def pop_index(self, key):
        raise CacheBackendError("connection refused")

    async def clear(self):
        raise CacheBackendError("connection refused")

    async def ping(self):
        raise CacheBackendError("connection refused")

    async def close(self):
        return None


@pytest.mark.asyncio
async def test_set_then_get_returns_a_copy(cache_store):
    value = {"items": [1, 2]}
    await cache_store.set("k", value, CacheTier.SEARCH)
    value["items"].append(3)

    assert await cache_store.get("k") == {"items": [1, 2]}


@pytest.mark.asyncio
async def test_entries_expire_after_their_ttl(cache_store, clock):
    await cache_store.set("k", "v", 60)
    clock.advance(59)
    assert await cache_store.get("k") == "v"
    clock.advance(2)
    assert await cache_store.get("k") is None


@pytest.mark.asyncio
async def test_stats_count_hits_and_misses(cache_store):
    await cache_store.get("missing")
    await cache_store.set("k", 1, 60)
    await cache_store.get("k")
    await cache_store.get("k")

    stats = cache_store.stats()
    assert stats["hits"] == 2
    assert stats["misses"] == 1
    assert stats["hit_rate"] == pytest.approx(0.6667)
    assert stats["backend"] == "memory"


@pytest.mark.asyncio
async def test_get_or_fetch_calls_the_factory_once(cache_store):
    calls = []

    async def factory():
        calls.append(1)
        return ["fresh"]

    assert await cache_store.get_or_fetch("k", factory, CacheTier.DETAILS) == ["fresh"]
    assert await cache_store.get_or_fetch("k", factory, CacheTier.DETAILS) == ["fresh"]
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_get_or_fetch_serves_stale_copy_when_upstream_fails(cache_store, clock):
    async def ok():
        return {"v": 1}

    async def broken():
        raise UpstreamError("boom", status=500)

    await cache_store.get_or_fetch("k", ok, 60)
    clock.advance(120)

    assert await cache_store.get_or_fetch("k", broken, 60) == {"v": 1}


@pytest.mark.asyncio
async def test_get_or_fetch_uses_fallback_without_caching_it(cache_store):
    async def broken():
        raise UpstreamError("boom")

    assert await cache_store.get_or_fetch("k", broken, 60, fallback=[]) == []
    assert await cache_store.get("k") is None


@pytest.mark.asyncio
async def test_get_or_fetch_propagates_without_stale_or_fallback(cache_store):
    async def broken():
        raise UpstreamError("boom")

    with pytest.raises(UpstreamError):
        await cache_store.get_or_fetch("k", broken, 60)


@pytest.mark.asyncio
async def test_none_results_are_not_cached(cache_store):
    calls = []

    async def factory():
        calls.append(1)
        return None

    await cache_store.get_or_fetch("k", factory, 60)
    await cache_store.get_or_fetch("k", factory, 60)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_delete_removes_value_and_stale_copy(cache_store):
    await cache_store.set("k", 1, 60, keep_stale=True)
    assert await cache_store.delete("k") == 1
    assert await cache_store.get("k") is None
    assert await cache_store.get_stale("k") is None


@pytest.mark.asyncio
async def test_index_is_consumed_once(cache_store):
    await cache_store.add_to_index("idx", "a", 60)
    await cache_store.add_to_index("idx", "b", 60)

    assert await cache_store.pop_index("idx") == {"a", "b"}
    assert await cache_store.pop_index("idx") == set()


@pytest.mark.asyncio
async def test_reset_clears_everything(cache_store):
    await cache_store.set("a", 1, 60)
    await cache_store.add_to_index("idx", "a", 60)
    await cache_store.reset()
    assert await cache_store.get("a") is None
    assert await cache_store.pop_index("idx") == set()


@pytest.mark.asyncio
async def test_backend_failures_degrade_to_misses_and_no_ops():
    store = CacheStore(FailingBackend())

    await store.set("k", 1, 60)
    assert await store.get("k") is None
    assert await store.delete("k") == 0
    assert await store.pop_index("idx") == set()
    await store.reset()
    assert await store.ping() is False

    async def factory():
        return "computed"

    assert await store.get_or_fetch("k", factory, 60) == "computed"
    stats = store.stats()
    assert stats["errors"] >= 5
    assert stats["backend"] == "redis"


@pytest.mark.asyncio
async def test_memory_backend_evicts_beyond_maxsize():
    store = CacheStore(MemoryCacheBackend(maxsize=2))
    for i in range(3):
        await store.set(f"k{i}", i, 60)
    present = [await store.get(f"k{i}") for i in range(3)]
    assert present.count(None) == 1


@pytest.mark.asyncio
async def test_redis_backend_closes_without_ever_connecting():
    backend = RedisCacheBackend.from_url("redis://127.0.0.1:6399/0")

    assert backend.name == "redis"
    await backend.close()
