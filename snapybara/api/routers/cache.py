"""/cache routers: observability and an admin reset."""

from fastapi import APIRouter, Depends, Response

from snapybara.api.deps import AuthUser, get_cache_store, require_admin, require_user
from snapybara.schemas.common import CacheStatsResponse
from snapybara.services.cache_store import CacheStore

router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/stats", response_model=CacheStatsResponse, summary="Cache hit/miss counters")
async def cache_stats(
    _: AuthUser = Depends(require_user),
    cache: CacheStore = Depends(get_cache_store),
):
    return cache.stats()


@router.delete("", status_code=204, summary="Drop every cached entry (admin)")
async def reset_cache(
    _: AuthUser = Depends(require_admin),
    cache: CacheStore = Depends(get_cache_store),
):
    await cache.reset()
    return Response(status_code=204)
