"""Repository abstractions for the service layer."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from snapybara.models import (
    Collection,
    Notification,
    PointOfInterest,
    Review,
    User,
)


@dataclass
class PointDistanceRow:
    point: PointOfInterest
    distance_m: float


@dataclass
class RatingStatsRow:
    average_rating: float = 0.0
    total_reviews: int = 0
    distribution: dict[int, int] = field(default_factory=dict)


class PointRepository(Protocol):
    async def get(self, point_id: int) -> PointOfInterest | None: ...

    async def get_by_external_id(self, external_id: str) -> PointOfInterest | None: ...

    async def existing_external_ids(self, external_ids: Sequence[str]) -> set[str]: ...

    async def add(self, point: PointOfInterest) -> PointOfInterest: ...

    async def within_radius(
        self,
        *,
        lat: float,
        lng: float,
        radius_m: float,
        categories: Sequence[str] = (),
        viewer_id: str | None = None,
        limit: int | None = None,
    ) -> list[PointDistanceRow]: ...

    async def list_by_user(
        self, user_id: str, *, limit: int, offset: int
    ) -> list[PointOfInterest]: ...

    async def increment_views(self, point_id: int) -> None: ...


class ReviewRepository(Protocol):
    async def get(self, review_id: int) -> Review | None: ...

    async def get_by_user_point(self, user_id: str, point_id: int) -> Review | None: ...

    async def add(self, review: Review) -> Review: ...

    async def list_for_point(self, point_id: int, *, limit: int, offset: int) -> list[Review]: ...

    async def list_for_user(self, user_id: str, *, limit: int, offset: int) -> list[Review]: ...

    async def rating_stats(self, point_id: int) -> RatingStatsRow: ...

    async def has_vote(self, review_id: int, user_id: str) -> bool: ...

    async def add_vote(self, review_id: int, user_id: str) -> None: ...

    async def remove_vote(self, review_id: int, user_id: str) -> None: ...

    async def count_votes(self, review_id: int) -> int: ...


class CollectionRepository(Protocol):
    async def get(self, collection_id: int) -> Collection | None: ...

    async def add(self, collection: Collection) -> Collection: ...

    async def list_for_user(self, user_id: str, *, include_private: bool) -> list[Collection]: ...

    async def list_public(self, *, limit: int, offset: int) -> list[Collection]: ...

    async def get_default(self, user_id: str) -> Collection | None: ...

    async def clear_default(self, user_id: str, *, keep_id: int | None = None) -> None: ...

    async def points(self, collection_id: int) -> list[PointOfInterest]: ...

    async def add_point(self, collection_id: int, point_id: int) -> bool: ...

    async def remove_point(self, collection_id: int, point_id: int) -> bool: ...

    async def count_points(self, collection_id: int) -> int: ...

    async def is_following(self, collection_id: int, user_id: str) -> bool: ...

    async def follow(self, collection_id: int, user_id: str) -> None: ...

    async def unfollow(self, collection_id: int, user_id: str) -> None: ...

    async def count_followers(self, collection_id: int) -> int: ...


class NotificationRepository(Protocol):
    async def get(self, notification_id: int) -> Notification | None: ...

    async def add(self, notification: Notification) -> Notification: ...

    async def list_for_user(
        self,
        user_id: str,
        *,
        is_read: bool | None,
        type_: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Notification], int]: ...

    async def count_unread(self, user_id: str) -> int: ...

    async def mark_all_read(self, user_id: str, *, read_at: datetime) -> int: ...

    async def delete(self, notification: Notification) -> None: ...

    async def delete_read_before(self, user_id: str, cutoff: datetime) -> int: ...

    async def purge(self, *, cutoff: datetime, now: datetime) -> int: ...


class UserRepository(Protocol):
    async def get(self, user_id: str) -> User | None: ...

    async def add(self, user: User) -> User: ...
