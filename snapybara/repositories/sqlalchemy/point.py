"""SQLAlchemy implementation of the point repository."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import and_, func, literal, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from snapybara.models import PointOfInterest, PointStatus
from snapybara.repositories.interfaces import PointDistanceRow, PointRepository
from snapybara.utils.geo import EARTH_RADIUS_M, bounding_box


def _distance_m_expr(lat: float, lng: float):
    lat_rad = func.radians(PointOfInterest.latitude)
    lng_rad = func.radians(PointOfInterest.longitude)
    lat0_rad = func.radians(literal(float(lat)))
    lng0_rad = func.radians(literal(float(lng)))

    # Haversine formula
    a = func.pow(func.sin((lat_rad - lat0_rad) / 2.0), 2) + func.cos(lat0_rad) * func.cos(
        lat_rad
    ) * func.pow(func.sin((lng_rad - lng0_rad) / 2.0), 2)
    return EARTH_RADIUS_M * 2.0 * func.asin(func.sqrt(func.least(1.0, a)))


class SqlAlchemyPointRepository(PointRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, point_id: int) -> PointOfInterest | None:
        return await self._session.get(PointOfInterest, int(point_id))

    async def get_by_external_id(self, external_id: str) -> PointOfInterest | None:
        stmt = select(PointOfInterest).where(PointOfInterest.external_place_id == external_id)
        return (await self._session.scalars(stmt)).first()

    async def existing_external_ids(self, external_ids: Sequence[str]) -> set[str]:
        if not external_ids:
            return set()
        stmt = select(PointOfInterest.external_place_id).where(
            PointOfInterest.external_place_id.in_(list(external_ids))
        )
        return {row for row in (await self._session.scalars(stmt)).all() if row}

    async def add(self, point: PointOfInterest) -> PointOfInterest:
        self._session.add(point)
        await self._session.flush()
        return point

    async def within_radius(
        self,
        *,
        lat: float,
        lng: float,
        radius_m: float,
        categories: Sequence[str] = (),
        viewer_id: str | None = None,
        limit: int | None = None,
    ) -> list[PointDistanceRow]:
        distance = _distance_m_expr(lat, lng)
        min_lat, min_lng, max_lat, max_lng = bounding_box(lat, lng, radius_m)

        visible = and_(
            PointOfInterest.status == PointStatus.approved.value,
            PointOfInterest.is_public.is_(True),
        )
        if viewer_id:
            visible = or_(visible, PointOfInterest.user_id == viewer_id)

        stmt = (
            select(PointOfInterest, distance.label("distance_m"))
            .where(PointOfInterest.is_active.is_(True))
            .where(visible)
            # Bounding box first so the (latitude, longitude) index is usable
            .where(PointOfInterest.latitude.between(min_lat, max_lat))
            .where(PointOfInterest.longitude.between(min_lng, max_lng))
            .where(distance <= float(radius_m))
            .order_by(
                distance.asc(), PointOfInterest.average_rating.desc(), PointOfInterest.id.asc()
            )
        )
        if categories:
            stmt = stmt.where(PointOfInterest.category.in_(list(categories)))
        if limit is not None:
            stmt = stmt.limit(int(limit))

        rows = (await self._session.execute(stmt)).all()
        return [PointDistanceRow(point=p, distance_m=float(d or 0.0)) for p, d in rows]

    async def list_by_user(
        self, user_id: str, *, limit: int, offset: int
    ) -> list[PointOfInterest]:
        stmt = (
            select(PointOfInterest)
            .where(PointOfInterest.user_id == user_id, PointOfInterest.is_active.is_(True))
            .order_by(PointOfInterest.created_at.desc(), PointOfInterest.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list((await self._session.scalars(stmt)).all())

    async def increment_views(self, point_id: int) -> None:
        stmt = (
            update(PointOfInterest)
            .where(PointOfInterest.id == int(point_id))
            .values(view_count=PointOfInterest.view_count + 1)
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)
