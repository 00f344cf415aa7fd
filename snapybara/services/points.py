"""Point of interest use cases: authoring, moderation, detail and provider imports.

Every mutation commits first and only then invalidates the cached searches
covering the point's area cells, so a concurrent search can never re-cache
the pre-commit state after the invalidation ran.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

import structlog
from sqlalchemy.exc import IntegrityError

from snapybara.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from snapybara.dto import ImportSummaryDTO, PointDTO, PointSummaryDTO
from snapybara.dto.mappers import local_summary, place_metadata, to_point_dto
from snapybara.infra.unit_of_work import UnitOfWork
from snapybara.models import PointCategory, PointOfInterest, PointSource, PointStatus
from snapybara.schemas.place import Place
from snapybara.schemas.point import PointCreateRequest, PointUpdateRequest
from snapybara.services import cache_keys
from snapybara.services.cache_invalidation import CacheInvalidator
from snapybara.services.cache_store import CacheStore, CacheTier
from snapybara.services.notifications import notify_point_moderated
from snapybara.services.places import PlacesClient
from snapybara.utils.datetime import utcnow
from snapybara.utils.geo import is_valid_coordinate

logger = structlog.get_logger(__name__)

UnitOfWorkFactory = Callable[[], UnitOfWork]

MAX_NEARBY_LIMIT = 100


def can_view(point: PointOfInterest | PointDTO, viewer_id: str | None, is_admin: bool) -> bool:
    if not point.is_active:
        return False
    if is_admin or (viewer_id is not None and point.user_id == viewer_id):
        return True
    return point.status == PointStatus.approved and point.is_public


def _point_from_place(place: Place) -> PointOfInterest:
    metadata = place_metadata(place)
    metadata.imported_at = utcnow()
    return PointOfInterest(
        user_id=None,
        name=place.name[:200],
        description=place.summary,
        latitude=place.latitude,
        longitude=place.longitude,
        category=place.category.value,
        tags=[],
        formatted_address=place.formatted_address,
        average_rating=0.0,
        review_count=0,
        is_public=True,
        is_active=True,
        status=PointStatus.approved.value,
        source=PointSource(place.source).value,
        external_place_id=place.place_id,
        external_metadata=metadata.model_dump(mode="json", exclude_none=True),
    )


class PointService:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        cache: CacheStore,
        invalidator: CacheInvalidator,
        places: PlacesClient | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._cache = cache
        self._invalidator = invalidator
        self._places = places

    async def _invalidate(
        self,
        point: PointOfInterest,
        previous_coordinates: tuple[float, float] | None = None,
    ) -> None:
        await self._invalidator.invalidate_for_point(point, previous_coordinates)
        await self._invalidator.invalidate_point_details(int(point.id))

    async def create(self, payload: PointCreateRequest, user_id: str) -> PointDTO:
        async with self._uow_factory() as uow:
            point = PointOfInterest(
                user_id=user_id,
                name=payload.name.strip(),
                description=payload.description,
                latitude=payload.latitude,
                longitude=payload.longitude,
                category=payload.category.value,
                tags=list(payload.tags),
                formatted_address=payload.formatted_address,
                is_public=payload.is_public,
                is_active=True,
                status=PointStatus.pending.value,
                source=PointSource.local.value,
            )
            await uow.points.add(point)

        await self._invalidate(point)
        logger.info("point_created", point_id=point.id, user_id=user_id)
        return to_point_dto(point)

    async def get(
        self, point_id: int, viewer_id: str | None = None, *, is_admin: bool = False
    ) -> PointDTO:
        """Point detail, served from the details cache when possible.

        Points the viewer may not see are reported as missing.
        """

        async def _fetch() -> dict:
            async with self._uow_factory() as uow:
                point = await uow.points.get(point_id)
                if point is None or not point.is_active:
                    raise NotFoundError("point not found")
                return to_point_dto(point).model_dump(mode="json")

        raw = await self._cache.get_or_fetch(
            cache_keys.point_details_key(point_id), _fetch, CacheTier.DETAILS
        )
        dto = PointDTO.model_validate(raw)
        if not can_view(dto, viewer_id, is_admin):
            raise NotFoundError("point not found")

        async with self._uow_factory() as uow:
            await uow.points.increment_views(point_id)
        return dto

    async def list_mine(self, user_id: str, *, page: int = 1, limit: int = 20) -> list[PointDTO]:
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be >= 1")
        async with self._uow_factory() as uow:
            points = await uow.points.list_by_user(
                user_id, limit=limit, offset=(page - 1) * limit
            )
            return [to_point_dto(p) for p in points]

    async def nearby(
        self,
        lat: float,
        lng: float,
        radius_m: float,
        categories: Sequence[str] | None = None,
        viewer_id: str | None = None,
        limit: int = 50,
    ) -> list[PointSummaryDTO]:
        """Local points only, nearest first; no provider calls and no caching."""

        if not is_valid_coordinate(lat, lng):
            raise ValidationError("latitude must be in [-90, 90] and longitude in [-180, 180]")
        if not 0 < limit <= MAX_NEARBY_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_NEARBY_LIMIT}")
        cats = cache_keys.normalize_categories(categories)
        allowed = {c.value for c in PointCategory}
        if any(c not in allowed for c in cats):
            raise ValidationError("unknown category")
        radius = cache_keys.clamp_radius(radius_m)
        async with self._uow_factory() as uow:
            rows = await uow.points.within_radius(
                lat=lat,
                lng=lng,
                radius_m=radius,
                categories=cats,
                viewer_id=viewer_id,
                limit=limit,
            )
            return [local_summary(row.point, row.distance_m) for row in rows]

    async def _editable(
        self, uow: UnitOfWork, point_id: int, user_id: str, is_admin: bool
    ) -> PointOfInterest:
        point = await uow.points.get(point_id)
        if point is None or not point.is_active:
            raise NotFoundError("point not found")
        if not is_admin and point.user_id != user_id:
            raise PermissionDeniedError("only the author can modify this point")
        return point

    async def update(
        self,
        point_id: int,
        payload: PointUpdateRequest,
        user_id: str,
        *,
        is_admin: bool = False,
    ) -> PointDTO:
        changes = payload.model_dump(exclude_unset=True)
        for required in ("name", "latitude", "longitude", "category", "tags", "is_public"):
            if required in changes and changes[required] is None:
                raise ValidationError(f"{required} cannot be null")

        async with self._uow_factory() as uow:
            point = await self._editable(uow, point_id, user_id, is_admin)
            previous = (float(point.latitude), float(point.longitude))
            for field, value in changes.items():
                if field == "category":
                    value = PointCategory(value).value
                elif field == "name":
                    value = value.strip()
                setattr(point, field, value)
            point.updated_at = utcnow()

        await self._invalidate(point, previous)
        logger.info("point_updated", point_id=point.id, fields=sorted(changes))
        return to_point_dto(point)

    async def remove(self, point_id: int, user_id: str, *, is_admin: bool = False) -> None:
        async with self._uow_factory() as uow:
            point = await self._editable(uow, point_id, user_id, is_admin)
            point.is_active = False
            point.updated_at = utcnow()

        await self._invalidate(point)
        logger.info("point_removed", point_id=point.id)

    async def set_status(
        self, point_id: int, status: PointStatus | str, *, reason: str | None = None
    ) -> PointDTO:
        """Moderation (admin only, enforced by the router)."""

        new_status = PointStatus(status)
        async with self._uow_factory() as uow:
            point = await uow.points.get(point_id)
            if point is None or not point.is_active:
                raise NotFoundError("point not found")
            changed = point.status != new_status.value
            point.status = new_status.value
            point.updated_at = utcnow()
            if changed:
                await notify_point_moderated(uow, point=point, status=new_status, reason=reason)

        await self._invalidate(point)
        logger.info("point_moderated", point_id=point.id, status=new_status.value)
        return to_point_dto(point)

    async def update_statistics(
        self, point_id: int, *, average_rating: float, review_count: int
    ) -> PointDTO:
        async with self._uow_factory() as uow:
            point = await uow.points.get(point_id)
            if point is None:
                raise NotFoundError("point not found")
            point.average_rating = round(float(average_rating), 1)
            point.review_count = int(review_count)

        await self._invalidate(point)
        return to_point_dto(point)

    def _require_places(self) -> PlacesClient:
        if self._places is None or not self._places.enabled:
            raise ValidationError("place imports require a places provider API key")
        return self._places

    async def import_place(self, place_id: str) -> PointDTO:
        places = self._require_places()
        async with self._uow_factory() as uow:
            if await uow.points.get_by_external_id(place_id) is not None:
                raise ConflictError("place already imported")

        place = await places.get_details(place_id)
        if place is None:
            raise NotFoundError("place not found")

        try:
            async with self._uow_factory() as uow:
                point = await uow.points.add(_point_from_place(place))
        except IntegrityError as exc:
            # Lost a race against another import of the same place
            raise ConflictError("place already imported") from exc

        await self._invalidate(point)
        logger.info("place_imported", point_id=point.id, place_id=place_id)
        return to_point_dto(point)

    async def import_area(
        self, lat: float, lng: float, *, radius_km: float = 5.0, max_places: int = 50
    ) -> ImportSummaryDTO:
        places = self._require_places()
        if not is_valid_coordinate(lat, lng):
            raise ValidationError("latitude must be in [-90, 90] and longitude in [-180, 180]")
        if max_places < 1:
            raise ValidationError("max_places must be >= 1")

        found = (await places.nearby_search(lat, lng, radius_km * 1000.0))[:max_places]
        summary = ImportSummaryDTO()
        imported: list[PointOfInterest] = []
        async with self._uow_factory() as uow:
            existing = await uow.points.existing_external_ids([p.place_id for p in found])
            for place in found:
                if place.place_id in existing:
                    summary.skipped += 1
                    continue
                if not is_valid_coordinate(place.latitude, place.longitude):
                    summary.errors += 1
                    continue
                imported.append(await uow.points.add(_point_from_place(place)))
                existing.add(place.place_id)
        summary.imported = len(imported)

        for point in imported:
            await self._invalidator.invalidate_for_point(point)
        logger.info(
            "area_imported",
            lat=lat,
            lng=lng,
            radius_km=radius_km,
            imported=summary.imported,
            skipped=summary.skipped,
            errors=summary.errors,
        )
        return summary


__all__ = ["PointService", "can_view"]
