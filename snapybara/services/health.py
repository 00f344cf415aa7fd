from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from snapybara.services.cache_store import CacheStore


class HealthService:
    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession], cache: CacheStore
    ) -> None:
        self._session_factory = session_factory
        self._cache = cache

    async def ok(self) -> dict:
        """Readiness: the database must answer; a dead cache only degrades."""

        async with self._session_factory() as session:
            await session.execute(text("SELECT 1"))
        cache_ok = await self._cache.ping()
        return {
            "ok": True,
            "database": "ok",
            "cache": "ok" if cache_ok else "degraded",
            "cache_backend": self._cache.backend_name,
        }
