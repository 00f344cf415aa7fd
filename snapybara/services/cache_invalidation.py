"""Area-cell based invalidation of cached search results after point mutations."""

from __future__ import annotations

from typing import Protocol

import structlog

from snapybara.services.cache_keys import (
    AreaCell,
    area_cell_key,
    area_index_key,
    cells_for_point,
    cells_for_search,
    point_details_key,
)
from snapybara.services.cache_store import CacheStore, CacheTier

logger = structlog.get_logger(__name__)

Coordinates = tuple[float, float]


class HasCoordinates(Protocol):
    latitude: float
    longitude: float


class CacheInvalidator:
    """Keeps the area-cell → search-key index and consumes it on mutation.

    Best effort: a read racing the mutation may repopulate an entry with data
    fetched just before commit. Such an entry lives at most one search TTL.
    """

    def __init__(
        self,
        cache: CacheStore,
        *,
        max_indexed_cells: int = 400,
        index_ttl: CacheTier | int = CacheTier.SEARCH,
    ) -> None:
        self._cache = cache
        self._max_cells = max_indexed_cells
        self._index_ttl = index_ttl

    async def record_search(self, key: str, lat: float, lng: float, radius_m: float) -> None:
        cells = cells_for_search(lat, lng, radius_m, self._max_cells)
        for cell in cells:
            await self._cache.add_to_index(area_index_key(cell), key, self._index_ttl)

    async def invalidate_for_point(
        self,
        point: HasCoordinates,
        previous_coordinates: Coordinates | None = None,
    ) -> int:
        """Drop every cached entry that may contain ``point``.

        Returns the number of cache entries deleted; a point that was never
        cached deletes nothing.
        """

        coords: list[Coordinates] = [(float(point.latitude), float(point.longitude))]
        if previous_coordinates is not None:
            prev = (float(previous_coordinates[0]), float(previous_coordinates[1]))
            if prev != coords[0]:
                coords.append(prev)

        cells: list[AreaCell] = []
        for lat, lng in coords:
            for cell in cells_for_point(lat, lng):
                if cell not in cells:
                    cells.append(cell)

        keys: set[str] = set()
        for cell in cells:
            keys.add(area_cell_key(cell))
            keys |= await self._cache.pop_index(area_index_key(cell))

        deleted = await self._cache.delete(*sorted(keys))
        logger.info(
            "cache_invalidated",
            cells=[c.label for c in cells],
            candidate_keys=len(keys),
            deleted=deleted,
        )
        return deleted

    async def invalidate_point_details(self, point_id: int) -> int:
        return await self._cache.delete(point_details_key(point_id))


__all__ = ["CacheInvalidator", "Coordinates", "HasCoordinates"]
