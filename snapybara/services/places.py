"""Places provider client (nearby, text search, details, autocomplete, photos).

Every public method is best effort: a missing API key or any upstream
failure yields an empty result and a logged warning, never an exception.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

from snapybara.core.exceptions import UpstreamError
from snapybara.models.point import PointCategory
from snapybara.schemas.place import AutocompleteResponse, Place
from snapybara.services import cache_keys
from snapybara.services.cache_store import CacheStore, CacheTier
from snapybara.services.place_mapping import (
    DEFAULT_NEARBY_TYPES,
    parse_place,
    parse_places,
    parse_predictions,
)

logger = structlog.get_logger(__name__)

PLACES_API = "https://places.googleapis.com/v1"
AUTOCOMPLETE_URL = "https://maps.googleapis.com/maps/api/place/autocomplete/json"
LEGACY_PHOTO_URL = "https://maps.googleapis.com/maps/api/place/photo"

MAX_RESULTS = 20
_PLACE_FIELDS = (
    "id",
    "displayName",
    "formattedAddress",
    "location",
    "types",
    "rating",
    "userRatingCount",
    "priceLevel",
    "businessStatus",
    "photos",
    "editorialSummary",
)
SEARCH_FIELD_MASK = ",".join(f"places.{f}" for f in _PLACE_FIELDS)
DETAILS_FIELD_MASK = ",".join(_PLACE_FIELDS + ("websiteUri", "internationalPhoneNumber"))
_OK_STATUSES = {"OK", "ZERO_RESULTS"}
_SECRET_PARAMS = {"key"}


def _loggable(params: dict[str, Any] | None) -> dict[str, Any] | None:
    if params is None:
        return None
    return {k: ("***" if k in _SECRET_PARAMS else v) for k, v in params.items()}


class PlacesClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        cache: CacheStore,
        *,
        api_key: str | None,
        language: str = "fr",
        timeout: float = 5.0,
        max_retries: int = 2,
    ) -> None:
        self._http = http
        self._cache = cache
        self._api_key = api_key
        self._language = language
        self._timeout = timeout
        self._max_retries = max_retries

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    def _headers(self, field_mask: str | None = None) -> dict[str, str]:
        headers = {"X-Goog-Api-Key": self._api_key or ""}
        if field_mask:
            headers["X-Goog-FieldMask"] = field_mask
        return headers

    async def _request_json(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Perform one provider call, retrying briefly on 429.

        Raises :class:`UpstreamError` on transport errors, non-2xx statuses
        and bodies that are not a JSON object.
        """

        backoff = 0.2
        attempts = 0
        while True:
            attempts += 1
            try:
                response = await self._http.request(
                    method, url, params=params, json=json, headers=headers, timeout=self._timeout
                )
            except httpx.HTTPError as exc:
                logger.warning(
                    "places_request_failed",
                    endpoint=url,
                    params=_loggable(params),
                    error=repr(exc),
                )
                raise UpstreamError(f"places request failed: {exc!r}", endpoint=url) from exc

            if response.status_code == 429 and attempts <= self._max_retries:
                await asyncio.sleep(backoff)
                backoff *= 2
                continue

            if not response.is_success:
                logger.warning(
                    "places_request_failed",
                    endpoint=url,
                    params=_loggable(params),
                    status=response.status_code,
                )
                raise UpstreamError(
                    f"places request failed with status {response.status_code}",
                    endpoint=url,
                    status=response.status_code,
                )

            try:
                payload = response.json()
            except ValueError as exc:
                logger.warning(
                    "places_response_not_json", endpoint=url, status=response.status_code
                )
                raise UpstreamError("places response is not JSON", endpoint=url) from exc
            if not isinstance(payload, dict):
                logger.warning(
                    "places_response_not_object",
                    endpoint=url,
                    body_type=type(payload).__name__,
                )
                raise UpstreamError("places response is not a JSON object", endpoint=url)
            return payload

    async def nearby_search(
        self,
        lat: float,
        lng: float,
        radius_m: float,
        category: PointCategory | str | None = None,
    ) -> list[Place]:
        if not self.enabled:
            logger.debug("places_disabled", op="nearby_search")
            return []

        radius = float(cache_keys.radius_bucket(radius_m))
        wanted = PointCategory(category) if category else None
        key = cache_keys.search_key(
            cache_keys.PLACES_NEARBY,
            lat,
            lng,
            radius,
            categories=[wanted.value] if wanted else None,
        )
        body = {
            "includedTypes": list(DEFAULT_NEARBY_TYPES),
            "maxResultCount": MAX_RESULTS,
            "languageCode": self._language,
            "locationRestriction": {
                "circle": {"center": {"latitude": lat, "longitude": lng}, "radius": radius}
            },
        }

        async def _fetch() -> list[dict[str, Any]]:
            payload = await self._request_json(
                "POST",
                f"{PLACES_API}/places:searchNearby",
                json=body,
                headers=self._headers(SEARCH_FIELD_MASK),
            )
            places = parse_places(payload)
            if wanted is not None:
                places = [p for p in places if p.category == wanted]
            return [p.model_dump(mode="json") for p in places]

        raw = await self._cache.get_or_fetch(key, _fetch, CacheTier.SEARCH, fallback=[])
        return [Place.model_validate(item) for item in raw]

    async def text_search(
        self,
        query: str,
        lat: float | None = None,
        lng: float | None = None,
        radius_m: float | None = None,
    ) -> list[Place]:
        if not self.enabled:
            logger.debug("places_disabled", op="text_search")
            return []
        if not query or not query.strip():
            return []

        body: dict[str, Any] = {
            "textQuery": query.strip(),
            "maxResultCount": MAX_RESULTS,
            "languageCode": self._language,
        }
        if lat is not None and lng is not None:
            radius = float(cache_keys.radius_bucket(radius_m or cache_keys.MAX_RADIUS_M))
            body["locationBias"] = {
                "circle": {"center": {"latitude": lat, "longitude": lng}, "radius": radius}
            }
        key = cache_keys.text_search_key(query, lat, lng, radius_m)

        async def _fetch() -> list[dict[str, Any]]:
            payload = await self._request_json(
                "POST",
                f"{PLACES_API}/places:searchText",
                json=body,
                headers=self._headers(SEARCH_FIELD_MASK),
            )
            return [p.model_dump(mode="json") for p in parse_places(payload)]

        raw = await self._cache.get_or_fetch(key, _fetch, CacheTier.SEARCH, fallback=[])
        return [Place.model_validate(item) for item in raw]

    async def get_details(self, place_id: str) -> Place | None:
        if not self.enabled or not place_id:
            return None

        async def _fetch() -> dict[str, Any] | None:
            try:
                payload = await self._request_json(
                    "GET",
                    f"{PLACES_API}/places/{place_id}",
                    params={"languageCode": self._language},
                    headers=self._headers(DETAILS_FIELD_MASK),
                )
            except UpstreamError as exc:
                if exc.status == 404:
                    return None
                raise
            try:
                place = parse_place(payload)
            except (TypeError, ValueError) as exc:
                logger.warning("places_details_unparseable", place_id=place_id, error=str(exc))
                raise UpstreamError("places details are malformed") from exc
            return place.model_dump(mode="json") if place else None

        raw = await self._cache.get_or_fetch(
            cache_keys.place_details_key(place_id), _fetch, CacheTier.DETAILS, fallback=None
        )
        return Place.model_validate(raw) if raw else None

    async def autocomplete(
        self,
        text: str,
        lat: float | None = None,
        lng: float | None = None,
        radius_m: float | None = None,
    ) -> AutocompleteResponse:
        if not self.enabled:
            return AutocompleteResponse(predictions=[], status="API_KEY_MISSING")
        if not text or not text.strip():
            return AutocompleteResponse(predictions=[], status="ZERO_RESULTS")

        key = cache_keys.autocomplete_key(text, lat, lng, radius_m)
        cached = await self._cache.get(key)
        if cached is not None:
            return AutocompleteResponse.model_validate(cached)

        params: dict[str, Any] = {
            "input": text.strip(),
            "language": self._language,
            "key": self._api_key,
        }
        if lat is not None and lng is not None:
            params["location"] = f"{lat},{lng}"
            params["radius"] = int(cache_keys.radius_bucket(radius_m or cache_keys.MAX_RADIUS_M))

        try:
            payload = await self._request_json("GET", AUTOCOMPLETE_URL, params=params)
        except UpstreamError:
            stale = await self._cache.get_stale(key)
            if stale is not None:
                return AutocompleteResponse.model_validate(stale)
            return AutocompleteResponse(predictions=[], status="ERROR")

        status = str(payload.get("status") or "UNKNOWN_ERROR")
        if status not in _OK_STATUSES:
            logger.warning(
                "places_autocomplete_status",
                endpoint=AUTOCOMPLETE_URL,
                status=status,
                error=payload.get("error_message"),
            )
            return AutocompleteResponse(predictions=[], status=status)

        response = AutocompleteResponse(predictions=parse_predictions(payload), status=status)
        await self._cache.set(
            key, response.model_dump(mode="json"), CacheTier.AUTOCOMPLETE, keep_stale=True
        )
        return response

    async def photo_url(self, photo_reference: str, max_width: int = 800) -> str | None:
        """Resolve a photo reference to a servable URL (cached for the photo tier)."""

        if not self.enabled or not photo_reference:
            return None
        max_width = max(1, min(int(max_width), 4800))
        if not photo_reference.startswith("places/"):
            return str(
                httpx.URL(
                    LEGACY_PHOTO_URL,
                    params={
                        "maxwidth": max_width,
                        "photo_reference": photo_reference,
                        "key": self._api_key,
                    },
                )
            )

        async def _fetch() -> str | None:
            payload = await self._request_json(
                "GET",
                f"{PLACES_API}/{photo_reference}/media",
                params={"maxWidthPx": max_width, "skipHttpRedirect": "true"},
                headers=self._headers(),
            )
            uri = payload.get("photoUri")
            return uri if isinstance(uri, str) else None

        return await self._cache.get_or_fetch(
            cache_keys.photo_key(photo_reference, max_width), _fetch, CacheTier.PHOTO, fallback=None
        )


__all__ = ["PlacesClient", "PLACES_API", "AUTOCOMPLETE_URL"]
