"""Collections of points, followers and the per-user favorites collection."""

from __future__ import annotations

from collections.abc import Callable

import structlog

from snapybara.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from snapybara.dto import CollectionDetailDTO, CollectionDTO, FollowToggleDTO, PointDTO
from snapybara.dto.mappers import to_point_dto
from snapybara.infra.unit_of_work import UnitOfWork
from snapybara.models import Collection
from snapybara.schemas.collection import CollectionCreateRequest, CollectionUpdateRequest
from snapybara.services.notifications import notify_new_follower
from snapybara.services.points import can_view
from snapybara.utils.datetime import utcnow

logger = structlog.get_logger(__name__)

UnitOfWorkFactory = Callable[[], UnitOfWork]

FAVORITES_NAME = "Favorites"


class CollectionService:
    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def create(self, payload: CollectionCreateRequest, user_id: str) -> CollectionDTO:
        async with self._uow_factory() as uow:
            if payload.is_default:
                await uow.collections.clear_default(user_id)
            collection = await uow.collections.add(
                Collection(
                    user_id=user_id,
                    name=payload.name.strip(),
                    description=payload.description,
                    is_public=payload.is_public,
                    is_default=payload.is_default,
                    cover_photo_url=payload.cover_photo_url,
                    points_count=0,
                    followers_count=0,
                    is_active=True,
                )
            )
            return CollectionDTO.model_validate(collection)

    async def list(
        self,
        viewer_id: str | None,
        *,
        owner_id: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> list[CollectionDTO]:
        """Collections of ``owner_id`` (private ones only for the owner), else public ones."""

        if page < 1 or not 0 < limit <= 100:
            raise ValidationError("page must be >= 1 and limit between 1 and 100")
        async with self._uow_factory() as uow:
            if owner_id:
                rows = await uow.collections.list_for_user(
                    owner_id, include_private=viewer_id == owner_id
                )
                rows = rows[(page - 1) * limit : page * limit]
            else:
                rows = await uow.collections.list_public(limit=limit, offset=(page - 1) * limit)
            return [CollectionDTO.model_validate(c) for c in rows]

    async def _visible(
        self, uow: UnitOfWork, collection_id: int, viewer_id: str | None
    ) -> Collection:
        collection = await uow.collections.get(collection_id)
        if collection is None:
            raise NotFoundError("collection not found")
        if not collection.is_public and collection.user_id != viewer_id:
            raise PermissionDeniedError("this collection is private")
        return collection

    async def _owned(self, uow: UnitOfWork, collection_id: int, user_id: str) -> Collection:
        collection = await uow.collections.get(collection_id)
        if collection is None:
            raise NotFoundError("collection not found")
        if collection.user_id != user_id:
            raise PermissionDeniedError("only the owner can modify this collection")
        return collection

    async def get(self, collection_id: int, viewer_id: str | None = None) -> CollectionDetailDTO:
        async with self._uow_factory() as uow:
            collection = await self._visible(uow, collection_id, viewer_id)
            points = await uow.collections.points(collection_id)
            detail = CollectionDetailDTO.model_validate(collection)
            detail.points = [to_point_dto(p) for p in points if can_view(p, viewer_id, False)]
            return detail

    async def update(
        self, collection_id: int, payload: CollectionUpdateRequest, user_id: str
    ) -> CollectionDTO:
        changes = payload.model_dump(exclude_unset=True)
        for required in ("name", "is_public", "is_default"):
            if required in changes and changes[required] is None:
                raise ValidationError(f"{required} cannot be null")
        async with self._uow_factory() as uow:
            collection = await self._owned(uow, collection_id, user_id)
            if changes.get("is_default"):
                await uow.collections.clear_default(user_id, keep_id=collection.id)
            for field, value in changes.items():
                setattr(collection, field, value.strip() if field == "name" else value)
            collection.updated_at = utcnow()
            return CollectionDTO.model_validate(collection)

    async def remove(self, collection_id: int, user_id: str) -> None:
        async with self._uow_factory() as uow:
            collection = await self._owned(uow, collection_id, user_id)
            collection.is_active = False
            collection.is_default = False
            collection.updated_at = utcnow()

    async def add_point(self, collection_id: int, point_id: int, user_id: str) -> CollectionDTO:
        """Append ``point_id`` at the end of the collection; adding it twice is a no-op."""

        async with self._uow_factory() as uow:
            collection = await self._owned(uow, collection_id, user_id)
            await _append_point(uow, collection, point_id, user_id)
            return CollectionDTO.model_validate(collection)

    async def remove_point(
        self, collection_id: int, point_id: int, user_id: str
    ) -> CollectionDTO:
        async with self._uow_factory() as uow:
            collection = await self._owned(uow, collection_id, user_id)
            if await uow.collections.remove_point(collection.id, point_id):
                collection.points_count = await uow.collections.count_points(collection.id)
            return CollectionDTO.model_validate(collection)

    async def toggle_follow(self, collection_id: int, user_id: str) -> FollowToggleDTO:
        async with self._uow_factory() as uow:
            collection = await self._visible(uow, collection_id, user_id)
            if collection.user_id == user_id:
                raise ValidationError("you cannot follow your own collection")
            if await uow.collections.is_following(collection.id, user_id):
                await uow.collections.unfollow(collection.id, user_id)
                following = False
            else:
                await uow.collections.follow(collection.id, user_id)
                await notify_new_follower(uow, collection=collection, follower_id=user_id)
                following = True
            count = await uow.collections.count_followers(collection.id)
            collection.followers_count = count
        return FollowToggleDTO(following=following, count=count)

    # Favorites live in the user's default collection, created on first use

    async def add_favorite(self, user_id: str, point_id: int) -> None:
        async with self._uow_factory() as uow:
            collection = await uow.collections.get_default(user_id)
            if collection is None:
                collection = await uow.collections.add(
                    Collection(
                        user_id=user_id,
                        name=FAVORITES_NAME,
                        is_public=False,
                        is_default=True,
                        points_count=0,
                        followers_count=0,
                        is_active=True,
                    )
                )
            await _append_point(uow, collection, point_id, user_id)

    async def remove_favorite(self, user_id: str, point_id: int) -> None:
        async with self._uow_factory() as uow:
            collection = await uow.collections.get_default(user_id)
            if collection is None:
                return
            if await uow.collections.remove_point(collection.id, point_id):
                collection.points_count = await uow.collections.count_points(collection.id)

    async def list_favorites(self, user_id: str) -> list[PointDTO]:
        async with self._uow_factory() as uow:
            collection = await uow.collections.get_default(user_id)
            if collection is None:
                return []
            points = await uow.collections.points(collection.id)
            return [to_point_dto(p) for p in points if can_view(p, user_id, False)]


async def _append_point(
    uow: UnitOfWork, collection: Collection, point_id: int, user_id: str
) -> None:
    point = await uow.points.get(point_id)
    if point is None or not can_view(point, user_id, False):
        raise NotFoundError("point not found")
    if await uow.collections.add_point(collection.id, point.id):
        collection.points_count = await uow.collections.count_points(collection.id)
        collection.updated_at = utcnow()
        logger.info("collection_point_added", collection_id=collection.id, point_id=point.id)


__all__ = ["CollectionService", "FAVORITES_NAME"]
