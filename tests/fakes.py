"""In-memory stand-ins for the unit of work and repositories used by service tests."""

from __future__ import annotations

import itertools
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import httpx

from snapybara.models import (
    Collection,
    Notification,
    PointOfInterest,
    PointStatus,
    Review,
    ReviewStatus,
    User,
)
from snapybara.repositories.interfaces import PointDistanceRow, RatingStatsRow
from snapybara.utils.datetime import utcnow
from snapybara.utils.geo import haversine_distance_m

_POINT_DEFAULTS = {
    "category": "other",
    "tags": list,
    "average_rating": 0.0,
    "review_count": 0,
    "photo_count": 0,
    "view_count": 0,
    "is_public": True,
    "is_active": True,
    "status": PointStatus.pending.value,
    "source": "local",
}


def _fill(obj, defaults: dict) -> None:
    for name, default in defaults.items():
        if getattr(obj, name, None) is None:
            setattr(obj, name, default() if callable(default) else default)
    now = utcnow()
    for name in ("created_at", "updated_at"):
        if hasattr(type(obj), name) and getattr(obj, name, None) is None:
            setattr(obj, name, now)


class FakeDatabase:
    """Shared state behind every FakeUnitOfWork built from the same instance."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.points: dict[int, PointOfInterest] = {}
        self.reviews: dict[int, Review] = {}
        self.votes: set[tuple[int, str]] = set()
        self.collections: dict[int, Collection] = {}
        self.collection_points: dict[int, list[int]] = {}
        self.followers: set[tuple[int, str]] = set()
        self.notifications: dict[int, Notification] = {}
        self.users: dict[str, User] = {}
        self.commits = 0

    def next_id(self) -> int:
        return next(self._ids)

    def uow(self) -> FakeUnitOfWork:
        return FakeUnitOfWork(self)

    def add_point(self, **fields) -> PointOfInterest:
        fields.setdefault("name", "Point")
        fields.setdefault("latitude", 48.8566)
        fields.setdefault("longitude", 2.3522)
        fields.setdefault("status", PointStatus.approved.value)
        point = PointOfInterest(**fields)
        _fill(point, _POINT_DEFAULTS)
        point.id = self.next_id()
        self.points[point.id] = point
        return point


class FakePointRepository:
    def __init__(self, db: FakeDatabase) -> None:
        self._db = db

    async def get(self, point_id: int) -> PointOfInterest | None:
        return self._db.points.get(int(point_id))

    async def get_by_external_id(self, external_id: str) -> PointOfInterest | None:
        for point in self._db.points.values():
            if point.external_place_id == external_id:
                return point
        return None

    async def existing_external_ids(self, external_ids: Sequence[str]) -> set[str]:
        wanted = set(external_ids)
        return {
            p.external_place_id for p in self._db.points.values() if p.external_place_id in wanted
        }

    async def add(self, point: PointOfInterest) -> PointOfInterest:
        _fill(point, _POINT_DEFAULTS)
        point.id = self._db.next_id()
        self._db.points[point.id] = point
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
        rows = []
        for point in self._db.points.values():
            if not point.is_active:
                continue
            visible = point.status == PointStatus.approved.value and point.is_public
            if not visible and not (viewer_id and point.user_id == viewer_id):
                continue
            if categories and point.category not in categories:
                continue
            distance = haversine_distance_m((lat, lng), (point.latitude, point.longitude))
            if distance <= radius_m:
                rows.append(PointDistanceRow(point=point, distance_m=distance))
        rows.sort(key=lambda r: (r.distance_m, -(r.point.average_rating or 0.0), r.point.id))
        return rows[:limit] if limit is not None else rows

    async def list_by_user(
        self, user_id: str, *, limit: int, offset: int
    ) -> list[PointOfInterest]:
        owned = [p for p in self._db.points.values() if p.user_id == user_id and p.is_active]
        owned.sort(key=lambda p: p.id, reverse=True)
        return owned[offset : offset + limit]

    async def increment_views(self, point_id: int) -> None:
        point = self._db.points.get(int(point_id))
        if point is not None:
            point.view_count += 1


class FakeReviewRepository:
    def __init__(self, db: FakeDatabase) -> None:
        self._db = db

    def _visible(self, review: Review) -> bool:
        return bool(review.is_active) and review.status == ReviewStatus.published.value

    async def get(self, review_id: int) -> Review | None:
        return self._db.reviews.get(int(review_id))

    async def get_by_user_point(self, user_id: str, point_id: int) -> Review | None:
        for review in self._db.reviews.values():
            if review.user_id == user_id and review.point_id == point_id:
                return review
        return None

    async def add(self, review: Review) -> Review:
        _fill(review, {"helpful_count": 0, "is_active": True, "status": "published"})
        review.id = self._db.next_id()
        self._db.reviews[review.id] = review
        return review

    async def list_for_point(self, point_id: int, *, limit: int, offset: int) -> list[Review]:
        rows = [
            r for r in self._db.reviews.values() if r.point_id == point_id and self._visible(r)
        ]
        rows.sort(key=lambda r: (-r.helpful_count, -r.id))
        return rows[offset : offset + limit]

    async def list_for_user(self, user_id: str, *, limit: int, offset: int) -> list[Review]:
        rows = [r for r in self._db.reviews.values() if r.user_id == user_id and r.is_active]
        rows.sort(key=lambda r: -r.id)
        return rows[offset : offset + limit]

    async def rating_stats(self, point_id: int) -> RatingStatsRow:
        distribution: dict[int, int] = {}
        for review in self._db.reviews.values():
            if review.point_id == point_id and self._visible(review):
                distribution[review.rating] = distribution.get(review.rating, 0) + 1
        total = sum(distribution.values())
        if total == 0:
            return RatingStatsRow()
        average = sum(r * c for r, c in distribution.items()) / total
        return RatingStatsRow(
            average_rating=round(average, 1), total_reviews=total, distribution=distribution
        )

    async def has_vote(self, review_id: int, user_id: str) -> bool:
        return (review_id, user_id) in self._db.votes

    async def add_vote(self, review_id: int, user_id: str) -> None:
        self._db.votes.add((review_id, user_id))

    async def remove_vote(self, review_id: int, user_id: str) -> None:
        self._db.votes.discard((review_id, user_id))

    async def count_votes(self, review_id: int) -> int:
        return sum(1 for rid, _ in self._db.votes if rid == review_id)


class FakeCollectionRepository:
    def __init__(self, db: FakeDatabase) -> None:
        self._db = db

    async def get(self, collection_id: int) -> Collection | None:
        collection = self._db.collections.get(int(collection_id))
        if collection is None or not collection.is_active:
            return None
        return collection

    async def add(self, collection: Collection) -> Collection:
        _fill(collection, {"is_public": True, "is_default": False, "is_active": True})
        collection.id = self._db.next_id()
        self._db.collections[collection.id] = collection
        self._db.collection_points[collection.id] = []
        return collection

    async def list_for_user(self, user_id: str, *, include_private: bool) -> list[Collection]:
        rows = [
            c
            for c in self._db.collections.values()
            if c.user_id == user_id and c.is_active and (include_private or c.is_public)
        ]
        rows.sort(key=lambda c: (not c.is_default, -c.id))
        return rows

    async def list_public(self, *, limit: int, offset: int) -> list[Collection]:
        rows = [c for c in self._db.collections.values() if c.is_public and c.is_active]
        rows.sort(key=lambda c: (-(c.followers_count or 0), -c.id))
        return rows[offset : offset + limit]

    async def get_default(self, user_id: str) -> Collection | None:
        for collection in self._db.collections.values():
            if collection.user_id == user_id and collection.is_default and collection.is_active:
                return collection
        return None

    async def clear_default(self, user_id: str, *, keep_id: int | None = None) -> None:
        for collection in self._db.collections.values():
            if collection.user_id == user_id and collection.id != keep_id:
                collection.is_default = False

    async def points(self, collection_id: int) -> list[PointOfInterest]:
        ids = self._db.collection_points.get(collection_id, [])
        return [self._db.points[i] for i in ids if self._db.points[i].is_active]

    async def add_point(self, collection_id: int, point_id: int) -> bool:
        ids = self._db.collection_points.setdefault(collection_id, [])
        if point_id in ids:
            return False
        ids.append(point_id)
        return True

    async def remove_point(self, collection_id: int, point_id: int) -> bool:
        ids = self._db.collection_points.get(collection_id, [])
        if point_id not in ids:
            return False
        ids.remove(point_id)
        return True

    async def count_points(self, collection_id: int) -> int:
        return len(self._db.collection_points.get(collection_id, []))

    async def is_following(self, collection_id: int, user_id: str) -> bool:
        return (collection_id, user_id) in self._db.followers

    async def follow(self, collection_id: int, user_id: str) -> None:
        self._db.followers.add((collection_id, user_id))

    async def unfollow(self, collection_id: int, user_id: str) -> None:
        self._db.followers.discard((collection_id, user_id))

    async def count_followers(self, collection_id: int) -> int:
        return sum(1 for cid, _ in self._db.followers if cid == collection_id)


class FakeNotificationRepository:
    def __init__(self, db: FakeDatabase) -> None:
        self._db = db

    async def get(self, notification_id: int) -> Notification | None:
        return self._db.notifications.get(int(notification_id))

    async def add(self, notification: Notification) -> Notification:
        _fill(notification, {"is_read": False, "priority": "medium"})
        notification.id = self._db.next_id()
        self._db.notifications[notification.id] = notification
        return notification

    def _for_user(self, user_id: str) -> list[Notification]:
        return [n for n in self._db.notifications.values() if n.user_id == user_id]

    async def list_for_user(
        self,
        user_id: str,
        *,
        is_read: bool | None,
        type_: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Notification], int]:
        rows = self._for_user(user_id)
        if is_read is not None:
            rows = [n for n in rows if bool(n.is_read) is is_read]
        if type_ is not None:
            rows = [n for n in rows if n.type == type_]
        rows.sort(key=lambda n: (n.created_at, n.id), reverse=True)
        return rows[offset : offset + limit], len(rows)

    async def count_unread(self, user_id: str) -> int:
        return sum(1 for n in self._for_user(user_id) if not n.is_read)

    async def mark_all_read(self, user_id: str, *, read_at: datetime) -> int:
        count = 0
        for notification in self._for_user(user_id):
            if not notification.is_read:
                notification.is_read = True
                notification.read_at = read_at
                count += 1
        return count

    async def delete(self, notification: Notification) -> None:
        self._db.notifications.pop(notification.id, None)

    async def delete_read_before(self, user_id: str, cutoff: datetime) -> int:
        doomed = [n.id for n in self._for_user(user_id) if n.is_read and n.created_at < cutoff]
        for notification_id in doomed:
            del self._db.notifications[notification_id]
        return len(doomed)

    async def purge(self, *, cutoff: datetime, now: datetime) -> int:
        doomed = [
            n.id
            for n in self._db.notifications.values()
            if (n.is_read and n.created_at < cutoff) or (n.expires_at and n.expires_at < now)
        ]
        for notification_id in doomed:
            del self._db.notifications[notification_id]
        return len(doomed)


class FakeUserRepository:
    def __init__(self, db: FakeDatabase) -> None:
        self._db = db

    async def get(self, user_id: str) -> User | None:
        return self._db.users.get(user_id)

    async def add(self, user: User) -> User:
        self._db.users[user.id] = user
        return user


class FakeUnitOfWork:
    def __init__(self, db: FakeDatabase) -> None:
        self._db = db
        self.points = FakePointRepository(db)
        self.reviews = FakeReviewRepository(db)
        self.collections = FakeCollectionRepository(db)
        self.notifications = FakeNotificationRepository(db)
        self.users = FakeUserRepository(db)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            self._db.commits += 1
        return False

    async def flush(self) -> None:
        return None

    async def commit(self) -> None:  # pragma: no cover - not used
        return None

    async def rollback(self) -> None:  # pragma: no cover - not used
        return None


class FakeClock:
    """Monotonic timer for the memory cache backend, advanced by hand."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


USERS = {
    "user-token": {"id": "user-1", "email": "user1@example.com", "app_metadata": {}},
    "other-token": {"id": "user-2", "email": "user2@example.com", "app_metadata": {}},
    "admin-token": {
        "id": "admin-1",
        "email": "admin@example.com",
        "app_metadata": {"role": "admin"},
    },
}


class StubProviders:
    """httpx MockTransport handler answering identity-provider and places calls."""

    def __init__(self) -> None:
        self.users = dict(USERS)
        self.places_status = 200
        self.places_payload: Any = {"places": []}
        self.identity_status: int | None = None
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/auth/v1/user":
            if self.identity_status is not None:
                return httpx.Response(self.identity_status)
            token = request.headers.get("authorization", "").removeprefix("Bearer ")
            user = self.users.get(token)
            if user is None:
                return httpx.Response(401, json={"msg": "invalid JWT"})
            return httpx.Response(200, json=user)
        if request.url.host in {"places.googleapis.com", "maps.googleapis.com"}:
            return httpx.Response(self.places_status, json=self.places_payload)
        return httpx.Response(404, json={})

    def calls_to(self, host: str) -> int:
        return sum(1 for r in self.requests if r.url.host == host)


def auth(token: str = "user-token") -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
