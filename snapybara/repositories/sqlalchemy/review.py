"""SQLAlchemy implementation of the review repository."""

from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from snapybara.models import Review, ReviewHelpfulVote, ReviewStatus
from snapybara.repositories.interfaces import RatingStatsRow, ReviewRepository


def _visible():
    return (Review.is_active.is_(True), Review.status == ReviewStatus.published.value)


class SqlAlchemyReviewRepository(ReviewRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, review_id: int) -> Review | None:
        return await self._session.get(Review, int(review_id))

    async def get_by_user_point(self, user_id: str, point_id: int) -> Review | None:
        stmt = select(Review).where(Review.user_id == user_id, Review.point_id == int(point_id))
        return (await self._session.scalars(stmt)).first()

    async def add(self, review: Review) -> Review:
        self._session.add(review)
        await self._session.flush()
        return review

    async def list_for_point(self, point_id: int, *, limit: int, offset: int) -> list[Review]:
        stmt = (
            select(Review)
            .where(Review.point_id == int(point_id), *_visible())
            .order_by(Review.helpful_count.desc(), Review.created_at.desc(), Review.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list((await self._session.scalars(stmt)).all())

    async def list_for_user(self, user_id: str, *, limit: int, offset: int) -> list[Review]:
        stmt = (
            select(Review)
            .where(Review.user_id == user_id, Review.is_active.is_(True))
            .order_by(Review.created_at.desc(), Review.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list((await self._session.scalars(stmt)).all())

    async def rating_stats(self, point_id: int) -> RatingStatsRow:
        stmt = (
            select(Review.rating, func.count())
            .where(Review.point_id == int(point_id), *_visible())
            .group_by(Review.rating)
        )
        distribution = {int(r): int(c) for r, c in (await self._session.execute(stmt)).all()}
        total = sum(distribution.values())
        if total == 0:
            return RatingStatsRow()
        average = sum(r * c for r, c in distribution.items()) / total
        return RatingStatsRow(
            average_rating=round(average, 1), total_reviews=total, distribution=distribution
        )

    async def has_vote(self, review_id: int, user_id: str) -> bool:
        stmt = select(ReviewHelpfulVote.review_id).where(
            ReviewHelpfulVote.review_id == int(review_id), ReviewHelpfulVote.user_id == user_id
        )
        return (await self._session.scalar(stmt)) is not None

    async def add_vote(self, review_id: int, user_id: str) -> None:
        """Idempotent insert using ON CONFLICT DO NOTHING."""
        stmt = (
            insert(ReviewHelpfulVote)
            .values(review_id=int(review_id), user_id=user_id)
            .on_conflict_do_nothing(
                index_elements=[ReviewHelpfulVote.review_id, ReviewHelpfulVote.user_id]
            )
        )
        await self._session.execute(stmt)

    async def remove_vote(self, review_id: int, user_id: str) -> None:
        stmt = delete(ReviewHelpfulVote).where(
            ReviewHelpfulVote.review_id == int(review_id), ReviewHelpfulVote.user_id == user_id
        )
        await self._session.execute(stmt)

    async def count_votes(self, review_id: int) -> int:
        stmt = select(func.count()).where(ReviewHelpfulVote.review_id == int(review_id))
        return int((await self._session.scalar(stmt)) or 0)
