"""SQLAlchemy implementation of the collection repository."""

from __future__ import annotations

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from snapybara.models import (
    Collection,
    CollectionFollower,
    CollectionPoint,
    PointOfInterest,
)
from snapybara.repositories.interfaces import CollectionRepository


class SqlAlchemyCollectionRepository(CollectionRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, collection_id: int) -> Collection | None:
        collection = await self._session.get(Collection, int(collection_id))
        if collection is None or not collection.is_active:
            return None
        return collection

    async def add(self, collection: Collection) -> Collection:
        self._session.add(collection)
        await self._session.flush()
        return collection

    async def list_for_user(self, user_id: str, *, include_private: bool) -> list[Collection]:
        stmt = select(Collection).where(
            Collection.user_id == user_id, Collection.is_active.is_(True)
        )
        if not include_private:
            stmt = stmt.where(Collection.is_public.is_(True))
        stmt = stmt.order_by(Collection.is_default.desc(), Collection.created_at.desc())
        return list((await self._session.scalars(stmt)).all())

    async def list_public(self, *, limit: int, offset: int) -> list[Collection]:
        stmt = (
            select(Collection)
            .where(Collection.is_public.is_(True), Collection.is_active.is_(True))
            .order_by(Collection.followers_count.desc(), Collection.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list((await self._session.scalars(stmt)).all())

    async def get_default(self, user_id: str) -> Collection | None:
        stmt = select(Collection).where(
            Collection.user_id == user_id,
            Collection.is_default.is_(True),
            Collection.is_active.is_(True),
        )
        return (await self._session.scalars(stmt)).first()

    async def clear_default(self, user_id: str, *, keep_id: int | None = None) -> None:
        stmt = (
            update(Collection)
            .where(Collection.user_id == user_id, Collection.is_default.is_(True))
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )
        if keep_id is not None:
            stmt = stmt.where(Collection.id != int(keep_id))
        await self._session.execute(stmt)
        # Flush before the caller sets a new default so the partial unique index holds
        await self._session.flush()

    async def points(self, collection_id: int) -> list[PointOfInterest]:
        stmt = (
            select(PointOfInterest)
            .join(CollectionPoint, CollectionPoint.point_id == PointOfInterest.id)
            .where(
                CollectionPoint.collection_id == int(collection_id),
                PointOfInterest.is_active.is_(True),
            )
            .order_by(CollectionPoint.position.asc())
        )
        return list((await self._session.scalars(stmt)).all())

    async def add_point(self, collection_id: int, point_id: int) -> bool:
        next_position = (
            select(func.coalesce(func.max(CollectionPoint.position), 0) + 1)
            .where(CollectionPoint.collection_id == int(collection_id))
            .scalar_subquery()
        )
        stmt = (
            insert(CollectionPoint)
            .values(
                collection_id=int(collection_id),
                point_id=int(point_id),
                position=next_position,
            )
            .on_conflict_do_nothing(
                index_elements=[CollectionPoint.collection_id, CollectionPoint.point_id]
            )
        )
        result = await self._session.execute(stmt)
        return bool(result.rowcount)

    async def remove_point(self, collection_id: int, point_id: int) -> bool:
        stmt = delete(CollectionPoint).where(
            CollectionPoint.collection_id == int(collection_id),
            CollectionPoint.point_id == int(point_id),
        )
        result = await self._session.execute(stmt)
        return bool(result.rowcount)

    async def count_points(self, collection_id: int) -> int:
        stmt = select(func.count()).where(CollectionPoint.collection_id == int(collection_id))
        return int((await self._session.scalar(stmt)) or 0)

    async def is_following(self, collection_id: int, user_id: str) -> bool:
        stmt = select(CollectionFollower.user_id).where(
            CollectionFollower.collection_id == int(collection_id),
            CollectionFollower.user_id == user_id,
        )
        return (await self._session.scalar(stmt)) is not None

    async def follow(self, collection_id: int, user_id: str) -> None:
        stmt = (
            insert(CollectionFollower)
            .values(collection_id=int(collection_id), user_id=user_id)
            .on_conflict_do_nothing(
                index_elements=[CollectionFollower.collection_id, CollectionFollower.user_id]
            )
        )
        await self._session.execute(stmt)

    async def unfollow(self, collection_id: int, user_id: str) -> None:
        stmt = delete(CollectionFollower).where(
            CollectionFollower.collection_id == int(collection_id),
            CollectionFollower.user_id == user_id,
        )
        await self._session.execute(stmt)

    async def count_followers(self, collection_id: int) -> int:
        stmt = select(func.count()).where(CollectionFollower.collection_id == int(collection_id))
        return int((await self._session.scalar(stmt)) or 0)
