"""Hybrid search: local points merged with external provider results, cached per area."""

from __future__ import annotations

import asyncio
import math
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Any

import httpx
import structlog

from snapybara.core.exceptions import UpstreamError, ValidationError
from snapybara.dto.mappers import external_summary, local_summary
from snapybara.dto.point import PointSummaryDTO
from snapybara.dto.search import HybridSearchPageDTO, SearchSourcesDTO
from snapybara.infra.unit_of_work import UnitOfWork
from snapybara.models.point import PointCategory, PointSource
from snapybara.schemas.place import Place
from snapybara.services import cache_keys
from snapybara.services.cache_invalidation import CacheInvalidator
from snapybara.services.cache_store import CacheStore, CacheTier
from snapybara.services.open_map import OpenMapClient
from snapybara.services.places import PlacesClient
from snapybara.utils.geo import haversine_distance_m, is_valid_coordinate

logger = structlog.get_logger(__name__)

UnitOfWorkFactory = Callable[[], UnitOfWork]

# Errors a provider call may surface despite its own guards; all mean "no external results"
_PROVIDER_ERRORS = (UpstreamError, httpx.HTTPError, ValueError)


def _matches_keyword(item: PointSummaryDTO, keyword: str | None) -> bool:
    if not keyword:
        return True
    needle = keyword.casefold()
    haystack = " ".join(
        part for part in (item.name, item.description or "", " ".join(item.tags)) if part
    ).casefold()
    return needle in haystack


def _sort_key(item: PointSummaryDTO) -> tuple[float, float, str]:
    return (item.distance_m, -(item.average_rating or 0.0), item.name)


class HybridSearchEngine:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        cache: CacheStore,
        invalidator: CacheInvalidator,
        places: PlacesClient,
        open_map: OpenMapClient | None = None,
        *,
        dedupe_distance_m: float = 100.0,
        max_limit: int = 50,
        external_timeout: float = 5.0,
    ) -> None:
        self._uow_factory = uow_factory
        self._cache = cache
        self._invalidator = invalidator
        self._places = places
        self._open_map = open_map
        self._dedupe_distance_m = dedupe_distance_m
        self._max_limit = max_limit
        self._external_timeout = external_timeout

    def _validate(
        self,
        lat: float,
        lng: float,
        radius_m: float,
        categories: Sequence[str] | None,
        page: int,
        limit: int,
    ) -> tuple[str, ...]:
        if not is_valid_coordinate(lat, lng):
            raise ValidationError("latitude must be in [-90, 90] and longitude in [-180, 180]")
        if not math.isfinite(radius_m) or radius_m <= 0:
            raise ValidationError("radius must be a positive number of metres")
        if page < 1:
            raise ValidationError("page must be >= 1")
        if limit < 1 or limit > self._max_limit:
            raise ValidationError(f"limit must be between 1 and {self._max_limit}")
        cats = cache_keys.normalize_categories(categories)
        allowed = {c.value for c in PointCategory}
        unknown = [c for c in cats if c not in allowed]
        if unknown:
            raise ValidationError(f"unknown categories: {', '.join(unknown)}")
        return cats

    async def search(
        self,
        lat: float,
        lng: float,
        radius_m: float,
        categories: Sequence[str] | None = None,
        page: int = 1,
        limit: int = 20,
        *,
        keyword: str | None = None,
        viewer_id: str | None = None,
        bypass_cache: bool = False,
    ) -> HybridSearchPageDTO:
        """Search local and external points within ``radius_m`` of (lat, lng).

        Raises ValidationError on bad input before touching any store. Local
        store errors propagate; external failures and timeouts only shrink
        the result to local points (and such degraded results are not cached).
        """

        cats = self._validate(lat, lng, radius_m, categories, page, limit)
        radius = float(cache_keys.radius_bucket(radius_m))
        keyword = (keyword or "").strip() or None
        key = cache_keys.search_key(
            cache_keys.HYBRID_SEARCH, lat, lng, radius, cats, keyword, viewer_id
        )

        if not bypass_cache:
            cached = await self._cache.get(key)
            if cached is not None:
                items = [PointSummaryDTO.model_validate(item) for item in cached]
                return self._page(items, page, limit, cached=True)

        local_result, external_result = await asyncio.gather(
            self._local(lat, lng, radius, cats, viewer_id),
            self._external(lat, lng, radius, keyword),
            return_exceptions=True,
        )
        if isinstance(local_result, BaseException):
            raise local_result
        if isinstance(external_result, BaseException):
            logger.warning("external_search_failed", error=repr(external_result))
            external_result = ([], True)
        places, degraded = external_result

        local_items = [item for item in local_result if _matches_keyword(item, keyword)]
        merged = self._merge(lat, lng, radius, cats, local_items, places)

        if not degraded:
            await self._cache.set(
                key, [item.model_dump(mode="json") for item in merged], CacheTier.SEARCH
            )
            await self._invalidator.record_search(key, lat, lng, radius)

        result = self._page(merged, page, limit, cached=False)
        logger.info(
            "hybrid_search",
            lat=lat,
            lng=lng,
            radius_m=radius,
            categories=list(cats),
            local=result.sources.local,
            external=result.sources.external,
            total=result.total,
            degraded=degraded,
        )
        return result

    async def _local(
        self,
        lat: float,
        lng: float,
        radius_m: float,
        categories: Sequence[str],
        viewer_id: str | None,
    ) -> list[PointSummaryDTO]:
        async with self._uow_factory() as uow:
            rows = await uow.points.within_radius(
                lat=lat,
                lng=lng,
                radius_m=radius_m,
                categories=categories,
                viewer_id=viewer_id,
            )
            return [local_summary(row.point, row.distance_m) for row in rows]

    async def _guarded(self, name: str, call: Awaitable[list[Place]]) -> tuple[list[Place], bool]:
        try:
            return await asyncio.wait_for(call, timeout=self._external_timeout), False
        except asyncio.TimeoutError:
            logger.warning("external_search_timeout", provider=name, timeout=self._external_timeout)
        except _PROVIDER_ERRORS as exc:
            logger.warning("external_search_failed", provider=name, error=repr(exc))
        return [], True

    async def _external(
        self, lat: float, lng: float, radius_m: float, keyword: str | None
    ) -> tuple[list[Place], bool]:
        calls: list[Awaitable[tuple[list[Place], bool]]] = []
        if self._places.enabled:
            if keyword:
                call = self._places.text_search(keyword, lat, lng, radius_m)
            else:
                call = self._places.nearby_search(lat, lng, radius_m)
            calls.append(self._guarded("places_provider", call))
        if self._open_map is not None and self._open_map.enabled:
            calls.append(self._guarded("open_map", self._open_map.nearby(lat, lng, radius_m)))
        if not calls:
            return [], False

        places: list[Place] = []
        degraded = False
        for batch, failed in await asyncio.gather(*calls):
            places.extend(batch)
            degraded = degraded or failed
        return places, degraded

    def _merge(
        self,
        lat: float,
        lng: float,
        radius_m: float,
        categories: Sequence[str],
        local_items: list[PointSummaryDTO],
        places: Iterable[Place],
    ) -> list[PointSummaryDTO]:
        merged = list(local_items)
        taken_ids = {item.external_id for item in local_items if item.external_id}
        accepted: list[PointSummaryDTO] = []

        for place in places:
            if place.place_id in taken_ids:
                continue
            if categories and place.category.value not in categories:
                continue
            distance = haversine_distance_m((lat, lng), (place.latitude, place.longitude))
            if distance > radius_m:
                continue
            if self._near_any(place, local_items):
                continue
            # Same physical place reported by two different providers
            if self._near_any(place, [a for a in accepted if a.source != place.source]):
                continue
            item = external_summary(place, distance)
            taken_ids.add(place.place_id)
            accepted.append(item)

        merged.extend(accepted)
        merged.sort(key=_sort_key)
        return merged

    def _near_any(self, place: Place, items: Iterable[PointSummaryDTO]) -> bool:
        origin = (place.latitude, place.longitude)
        return any(
            haversine_distance_m(origin, (item.latitude, item.longitude))
            <= self._dedupe_distance_m
            for item in items
        )

    @staticmethod
    def _page(
        items: list[PointSummaryDTO], page: int, limit: int, *, cached: bool
    ) -> HybridSearchPageDTO:
        local = sum(1 for item in items if item.source == PointSource.local)
        start = (page - 1) * limit
        return HybridSearchPageDTO(
            data=items[start : start + limit],
            total=len(items),
            page=page,
            limit=limit,
            sources=SearchSourcesDTO(local=local, external=len(items) - local),
            cached=cached,
        )

    async def get_cached_or_fetch(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        tier: CacheTier | int,
    ) -> Any:
        return await self._cache.get_or_fetch(key, factory, tier)

    def get_cache_stats(self) -> dict[str, Any]:
        stats = self._cache.stats()
        return {"hits": stats["hits"], "misses": stats["misses"], "hit_rate": stats["hit_rate"]}


__all__ = ["HybridSearchEngine"]
