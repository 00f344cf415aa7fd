"""Open map data (Overpass) provider, queried and cached per area cell."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import httpx
import structlog

from snapybara.core.exceptions import UpstreamError
from snapybara.models.point import PointCategory, PointSource
from snapybara.schemas.place import Place
from snapybara.services import cache_keys
from snapybara.services.cache_store import CacheStore, CacheTier
from snapybara.services.place_mapping import categorize
from snapybara.utils.geo import haversine_distance_m

logger = structlog.get_logger(__name__)

USER_AGENT = "SnapyBara-Backend/1.0"
# A radius query never fans out to more cells than the centre neighbourhood
MAX_CELLS_PER_QUERY = 9
_HALF_CELL = 0.5 / 10**cache_keys.CELL_PRECISION

_QUERY = """[out:json][timeout:{timeout}];
(
  nwr["tourism"~"^(viewpoint|museum|attraction|artwork)$"]["name"]({bbox});
  nwr["historic"~"^(monument|castle|memorial|ruins)$"]["name"]({bbox});
  nwr["leisure"~"^(park|garden|nature_reserve)$"]["name"]({bbox});
  nwr["amenity"~"^(place_of_worship|fountain)$"]["name"]({bbox});
  node["natural"~"^(peak|waterfall|beach)$"]["name"]({bbox});
  node["waterway"="waterfall"]["name"]({bbox});
  nwr["place"="square"]["name"]({bbox});
);
out center 100;"""

# (tag, value or None for any value) → category, first match wins
_TAG_CATEGORIES: tuple[tuple[str, str | None, PointCategory], ...] = (
    ("natural", "peak", PointCategory.mountain),
    ("natural", "waterfall", PointCategory.waterfall),
    ("waterway", "waterfall", PointCategory.waterfall),
    ("natural", "beach", PointCategory.beach),
    ("leisure", "nature_reserve", PointCategory.forest),
    ("amenity", "place_of_worship", PointCategory.religious),
    ("historic", None, PointCategory.historical),
    ("tourism", "museum", PointCategory.historical),
    ("tourism", "viewpoint", PointCategory.landscape),
    ("leisure", "park", PointCategory.landscape),
    ("leisure", "garden", PointCategory.landscape),
    ("tourism", "artwork", PointCategory.urban),
    ("amenity", "fountain", PointCategory.urban),
    ("place", "square", PointCategory.urban),
)
_TAG_KEYS = ("tourism", "historic", "leisure", "amenity", "natural", "waterway", "place")


def category_for_tags(name: str, tags: Mapping[str, str]) -> PointCategory:
    for tag, value, category in _TAG_CATEGORIES:
        if tag in tags and (value is None or tags[tag] == value):
            return category
    return categorize(name, [])


def _parse_element(element: Mapping[str, Any]) -> Place | None:
    tags = element.get("tags")
    if not isinstance(tags, Mapping):
        return None
    name = tags.get("name")
    if not isinstance(name, str) or not name.strip():
        return None
    center = element.get("center") or element
    try:
        lat = float(center["lat"])
        lng = float(center["lon"])
    except (KeyError, TypeError, ValueError):
        return None
    return Place(
        place_id=f"osm:{element.get('type', 'node')}/{element.get('id')}",
        name=name,
        latitude=lat,
        longitude=lng,
        category=category_for_tags(name, tags),
        types=[f"{k}={tags[k]}" for k in _TAG_KEYS if k in tags],
        website=tags.get("website"),
        summary=tags.get("description"),
        source=PointSource.open_map,
    )


def parse_elements(payload: Any) -> list[Place]:
    """Named Overpass elements as places; malformed elements are skipped."""

    elements = payload.get("elements") if isinstance(payload, Mapping) else None
    places: list[Place] = []
    for element in elements if isinstance(elements, list) else []:
        if not isinstance(element, Mapping):
            continue
        try:
            place = _parse_element(element)
        except (TypeError, ValueError) as exc:
            logger.warning("open_map_element_skipped", osm_id=element.get("id"), error=str(exc))
            continue
        if place is not None:
            places.append(place)
    return places


class OpenMapClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        cache: CacheStore,
        *,
        endpoints: list[str],
        enabled: bool = False,
        timeout: float = 5.0,
        max_concurrency: int = 2,
    ) -> None:
        self._http = http
        self._cache = cache
        self._endpoints = list(endpoints)
        self._enabled = enabled and bool(self._endpoints)
        self._timeout = timeout
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._next_endpoint = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    def _endpoint_order(self) -> list[str]:
        start = self._next_endpoint % len(self._endpoints)
        self._next_endpoint += 1
        return self._endpoints[start:] + self._endpoints[:start]

    async def _post_query(self, query: str) -> dict[str, Any]:
        last_error: UpstreamError | None = None
        for endpoint in self._endpoint_order():
            try:
                async with self._semaphore:
                    response = await self._http.post(
                        endpoint,
                        data={"data": query},
                        headers={"User-Agent": USER_AGENT},
                        timeout=self._timeout,
                    )
            except httpx.HTTPError as exc:
                logger.warning("open_map_request_failed", endpoint=endpoint, error=repr(exc))
                last_error = UpstreamError(repr(exc), endpoint=endpoint)
                continue
            if not response.is_success:
                logger.warning(
                    "open_map_request_failed", endpoint=endpoint, status=response.status_code
                )
                last_error = UpstreamError(
                    f"status {response.status_code}", endpoint=endpoint, status=response.status_code
                )
                continue
            try:
                payload = response.json()
            except ValueError:
                logger.warning("open_map_response_not_json", endpoint=endpoint)
                last_error = UpstreamError("response is not JSON", endpoint=endpoint)
                continue
            if not isinstance(payload, dict):
                logger.warning("open_map_response_not_object", endpoint=endpoint)
                last_error = UpstreamError("response is not a JSON object", endpoint=endpoint)
                continue
            return payload
        raise last_error or UpstreamError("no open map endpoint configured")

    async def _cell_places(self, cell: cache_keys.AreaCell) -> list[Place]:
        lat, lng = cell.center
        bbox = (
            f"{lat - _HALF_CELL:.5f},{lng - _HALF_CELL:.5f},"
            f"{lat + _HALF_CELL:.5f},{lng + _HALF_CELL:.5f}"
        )
        query = _QUERY.format(timeout=int(self._timeout), bbox=bbox)

        async def _fetch() -> list[dict[str, Any]]:
            payload = await self._post_query(query)
            return [p.model_dump(mode="json") for p in parse_elements(payload)]

        raw = await self._cache.get_or_fetch(
            cache_keys.area_cell_key(cell), _fetch, CacheTier.DETAILS, fallback=[]
        )
        return [Place.model_validate(item) for item in raw]

    async def nearby(self, lat: float, lng: float, radius_m: float) -> list[Place]:
        if not self._enabled:
            return []
        radius = cache_keys.clamp_radius(radius_m)
        cells = cache_keys.cells_for_search(lat, lng, radius, MAX_CELLS_PER_QUERY)
        batches = await asyncio.gather(*(self._cell_places(cell) for cell in cells))

        seen: set[str] = set()
        places: list[Place] = []
        for batch in batches:
            for place in batch:
                if place.place_id in seen:
                    continue
                if haversine_distance_m((lat, lng), (place.latitude, place.longitude)) > radius:
                    continue
                seen.add(place.place_id)
                places.append(place)
        return places


__all__ = ["OpenMapClient", "category_for_tags", "parse_elements"]
