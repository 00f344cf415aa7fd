"""TTL key-value cache over an in-memory or Redis backend.

Backend failures never reach callers: reads become misses and writes become
no-ops, each logged once per operation.
"""

from __future__ import annotations

import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

import structlog
from cachetools import TLRUCache
from redis import asyncio as redis_asyncio
from redis.exceptions import RedisError

from snapybara.core.exceptions import CacheBackendError, UpstreamError

logger = structlog.get_logger(__name__)

STALE_PREFIX = "stale:"


class CacheTier(int, Enum):
    """TTL in seconds, by volatility of the cached data."""

    SEARCH = 3_600
    DETAILS = 86_400
    PHOTO = 604_800
    AUTOCOMPLETE = 1_800


class CacheBackend(Protocol):
    name: str

    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl: int) -> None: ...

    async def delete(self, *keys: str) -> int: ...

    async def add_to_index(self, key: str, member: str, ttl: int) -> None: ...

    async def pop_index(self, key: str) -> set[str]: ...

    async def clear(self) -> None: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


@dataclass
class _Entry:
    payload: Any
    ttl: float


class MemoryCacheBackend:
    """Process-local backend; values are stored as JSON so callers never share state."""

    name = "memory"

    def __init__(self, maxsize: int = 10_000, timer: Callable[[], float] = time.monotonic) -> None:
        self._values: TLRUCache = TLRUCache(maxsize=maxsize, ttu=self._ttu, timer=timer)
        self._indexes: TLRUCache = TLRUCache(maxsize=maxsize, ttu=self._ttu, timer=timer)

    @staticmethod
    def _ttu(_key: str, entry: _Entry, now: float) -> float:
        return now + entry.ttl

    async def get(self, key: str) -> Any | None:
        entry = self._values.get(key)
        if entry is None:
            return None
        return json.loads(entry.payload)

    async def set(self, key: str, value: Any, ttl: int) -> None:
        self._values[key] = _Entry(json.dumps(value), float(ttl))

    async def delete(self, *keys: str) -> int:
        deleted = 0
        for key in keys:
            if self._values.pop(key, None) is not None:
                deleted += 1
        return deleted

    async def add_to_index(self, key: str, member: str, ttl: int) -> None:
        entry = self._indexes.get(key)
        members = set(entry.payload) if entry else set()
        members.add(member)
        ttl_value = max(float(ttl), entry.ttl) if entry else float(ttl)
        self._indexes[key] = _Entry(members, ttl_value)

    async def pop_index(self, key: str) -> set[str]:
        entry = self._indexes.pop(key, None)
        return set(entry.payload) if entry else set()

    async def clear(self) -> None:
        self._values.clear()
        self._indexes.clear()

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class RedisCacheBackend:
    """Redis backend; every key lives under ``namespace``."""

    name = "redis"

    def __init__(self, client: redis_asyncio.Redis, namespace: str = "snapybara:") -> None:
        self._client = client
        self._ns = namespace

    @classmethod
    def from_url(cls, url: str, namespace: str = "snapybara:", timeout: float = 2.0):
        client = redis_asyncio.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            retry_on_timeout=False,
            health_check_interval=30,
        )
        return cls(client, namespace)

    def _k(self, key: str) -> str:
        return f"{self._ns}{key}"

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._client.get(self._k(key))
        except RedisError as exc:
            raise CacheBackendError(str(exc)) from exc
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise CacheBackendError(f"undecodable cache entry for {key}") from exc

    async def set(self, key: str, value: Any, ttl: int) -> None:
        try:
            await self._client.set(self._k(key), json.dumps(value), ex=int(ttl))
        except RedisError as exc:
            raise CacheBackendError(str(exc)) from exc

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return int(await self._client.delete(*(self._k(k) for k in keys)))
        except RedisError as exc:
            raise CacheBackendError(str(exc)) from exc

    async def add_to_index(self, key: str, member: str, ttl: int) -> None:
        try:
            async with self._client.pipeline(transaction=False) as pipe:
                pipe.sadd(self._k(key), member)
                pipe.expire(self._k(key), int(ttl))
                await pipe.execute()
        except RedisError as exc:
            raise CacheBackendError(str(exc)) from exc

    async def pop_index(self, key: str) -> set[str]:
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.smembers(self._k(key))
                pipe.delete(self._k(key))
                members, _ = await pipe.execute()
        except RedisError as exc:
            raise CacheBackendError(str(exc)) from exc
        return set(members or ())

    async def clear(self) -> None:
        try:
            batch: list[str] = []
            async for key in self._client.scan_iter(match=f"{self._ns}*", count=500):
                batch.append(key)
                if len(batch) >= 500:
                    await self._client.delete(*batch)
                    batch = []
            if batch:
                await self._client.delete(*batch)
        except RedisError as exc:
            raise CacheBackendError(str(exc)) from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as exc:
            raise CacheBackendError(str(exc)) from exc

    async def close(self) -> None:
        await self._client.aclose()


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    errors: int = 0
    backend: str = field(default="memory")

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return round(self.hits / total, 4) if total else 0.0

    def as_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
            "errors": self.errors,
            "backend": self.backend,
        }


_MISSING = object()


class CacheStore:
    """Cache facade used by services; see module docstring for failure policy."""

    def __init__(self, backend: CacheBackend, *, stale_ttl: int = 86_400) -> None:
        self._backend = backend
        self._stale_ttl = int(stale_ttl)
        self._stats = CacheStats(backend=backend.name)

    @property
    def backend_name(self) -> str:
        return self._backend.name

    def _backend_failed(self, op: str, key: str | None, exc: CacheBackendError) -> None:
        self._stats.errors += 1
        logger.warning("cache_backend_error", op=op, key=key, error=str(exc))

    async def get(self, key: str) -> Any | None:
        try:
            value = await self._backend.get(key)
        except CacheBackendError as exc:
            self._backend_failed("get", key, exc)
            value = None
        if value is None:
            self._stats.misses += 1
            logger.debug("cache_miss", key=key)
            return None
        self._stats.hits += 1
        logger.debug("cache_hit", key=key)
        return value

    async def set(
        self, key: str, value: Any, ttl: CacheTier | int, *, keep_stale: bool = False
    ) -> None:
        seconds = int(ttl)
        try:
            await self._backend.set(key, value, seconds)
            if keep_stale and self._stale_ttl > 0:
                await self._backend.set(STALE_PREFIX + key, value, seconds + self._stale_ttl)
        except CacheBackendError as exc:
            self._backend_failed("set", key, exc)

    async def get_stale(self, key: str) -> Any | None:
        try:
            return await self._backend.get(STALE_PREFIX + key)
        except CacheBackendError as exc:
            self._backend_failed("get_stale", key, exc)
            return None

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            deleted = await self._backend.delete(*keys)
            await self._backend.delete(*(STALE_PREFIX + k for k in keys))
        except CacheBackendError as exc:
            self._backend_failed("delete", ",".join(keys), exc)
            return 0
        return deleted

    async def reset(self) -> None:
        try:
            await self._backend.clear()
        except CacheBackendError as exc:
            self._backend_failed("reset", None, exc)
            return
        logger.info("cache_reset", backend=self._backend.name)

    async def add_to_index(self, key: str, member: str, ttl: CacheTier | int) -> None:
        try:
            await self._backend.add_to_index(key, member, int(ttl))
        except CacheBackendError as exc:
            self._backend_failed("add_to_index", key, exc)

    async def pop_index(self, key: str) -> set[str]:
        try:
            return await self._backend.pop_index(key)
        except CacheBackendError as exc:
            self._backend_failed("pop_index", key, exc)
            return set()

    async def get_or_fetch(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl: CacheTier | int,
        *,
        fallback: Any = _MISSING,
    ) -> Any:
        """Return the cached value or compute, store and return it.

        When ``factory`` raises :class:`UpstreamError` the last stale copy is
        served, then ``fallback`` if one was given; otherwise the error
        propagates. Fallback values are never cached.
        """

        cached = await self.get(key)
        if cached is not None:
            return cached
        try:
            value = await factory()
        except UpstreamError as exc:
            stale = await self.get_stale(key)
            if stale is not None:
                logger.warning("cache_stale_served", key=key, error=str(exc))
                return stale
            if fallback is not _MISSING:
                return fallback
            raise
        if value is not None:
            await self.set(key, value, ttl, keep_stale=True)
        return value

    def stats(self) -> dict[str, Any]:
        return self._stats.as_dict()

    async def ping(self) -> bool:
        try:
            return await self._backend.ping()
        except CacheBackendError as exc:
            self._backend_failed("ping", None, exc)
            return False

    async def close(self) -> None:
        try:
            await self._backend.close()
        except (CacheBackendError, RedisError) as exc:
            logger.warning("cache_close_failed", error=str(exc))


def build_cache_store(
    redis_url: str | None,
    *,
    namespace: str = "snapybara:",
    max_entries: int = 10_000,
    stale_ttl: int = 86_400,
) -> CacheStore:
    backend: CacheBackend
    if redis_url:
        backend = RedisCacheBackend.from_url(redis_url, namespace=namespace)
    else:
        backend = MemoryCacheBackend(maxsize=max_entries)
    return CacheStore(backend, stale_ttl=stale_ttl)


__all__ = [
    "CacheBackend",
    "CacheStats",
    "CacheStore",
    "CacheTier",
    "MemoryCacheBackend",
    "RedisCacheBackend",
    "build_cache_store",
]
