"""Review use cases; every rating change is folded back into the point statistics."""

from __future__ import annotations

from collections.abc import Callable

import structlog
from sqlalchemy.exc import IntegrityError

from snapybara.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from snapybara.dto import HelpfulToggleDTO, PointStatisticsDTO, ReviewDTO
from snapybara.infra.unit_of_work import UnitOfWork
from snapybara.models import PointOfInterest, Review, ReviewStatus
from snapybara.schemas.review import ReviewCreateRequest, ReviewUpdateRequest
from snapybara.services.cache_invalidation import CacheInvalidator
from snapybara.services.notifications import notify_new_review
from snapybara.utils.datetime import utcnow

logger = structlog.get_logger(__name__)

UnitOfWorkFactory = Callable[[], UnitOfWork]


async def _refresh_statistics(uow: UnitOfWork, point: PointOfInterest) -> None:
    await uow.flush()
    stats = await uow.reviews.rating_stats(int(point.id))
    point.average_rating = stats.average_rating
    point.review_count = stats.total_reviews


def _paging(page: int, limit: int) -> int:
    if page < 1 or limit < 1 or limit > 100:
        raise ValidationError("page must be >= 1 and limit between 1 and 100")
    return (page - 1) * limit


class ReviewService:
    def __init__(self, uow_factory: UnitOfWorkFactory, invalidator: CacheInvalidator) -> None:
        self._uow_factory = uow_factory
        self._invalidator = invalidator

    async def _point_changed(self, point: PointOfInterest) -> None:
        await self._invalidator.invalidate_for_point(point)
        await self._invalidator.invalidate_point_details(int(point.id))

    async def create(self, payload: ReviewCreateRequest, user_id: str) -> ReviewDTO:
        """One review per user and point; a previously deleted review is revived."""

        try:
            async with self._uow_factory() as uow:
                point = await uow.points.get(payload.point_id)
                if point is None or not point.is_active:
                    raise NotFoundError("point not found")

                review = await uow.reviews.get_by_user_point(user_id, payload.point_id)
                if review is not None and review.is_active:
                    raise ConflictError("you have already reviewed this point")
                if review is None:
                    review = await uow.reviews.add(
                        Review(
                            user_id=user_id,
                            point_id=payload.point_id,
                            rating=payload.rating,
                            comment=payload.comment,
                            helpful_count=0,
                            is_active=True,
                            status=ReviewStatus.published.value,
                        )
                    )
                else:
                    review.rating = payload.rating
                    review.comment = payload.comment
                    review.is_active = True
                    review.status = ReviewStatus.published.value
                    review.updated_at = utcnow()

                await _refresh_statistics(uow, point)
                await notify_new_review(uow, point=point, review=review)
        except IntegrityError as exc:
            raise ConflictError("you have already reviewed this point") from exc

        await self._point_changed(point)
        logger.info("review_created", review_id=review.id, point_id=point.id)
        return ReviewDTO.model_validate(review)

    async def list_for_point(
        self, point_id: int, *, page: int = 1, limit: int = 20
    ) -> list[ReviewDTO]:
        offset = _paging(page, limit)
        async with self._uow_factory() as uow:
            reviews = await uow.reviews.list_for_point(point_id, limit=limit, offset=offset)
            return [ReviewDTO.model_validate(r) for r in reviews]

    async def list_for_user(
        self, user_id: str, *, page: int = 1, limit: int = 20
    ) -> list[ReviewDTO]:
        offset = _paging(page, limit)
        async with self._uow_factory() as uow:
            reviews = await uow.reviews.list_for_user(user_id, limit=limit, offset=offset)
            return [ReviewDTO.model_validate(r) for r in reviews]

    async def get(self, review_id: int) -> ReviewDTO:
        async with self._uow_factory() as uow:
            review = await uow.reviews.get(review_id)
            if review is None or not review.is_active:
                raise NotFoundError("review not found")
            return ReviewDTO.model_validate(review)

    async def _authored(
        self, uow: UnitOfWork, review_id: int, user_id: str, is_admin: bool
    ) -> tuple[Review, PointOfInterest]:
        review = await uow.reviews.get(review_id)
        if review is None or not review.is_active:
            raise NotFoundError("review not found")
        if not is_admin and review.user_id != user_id:
            raise PermissionDeniedError("only the author can modify this review")
        point = await uow.points.get(review.point_id)
        if point is None:
            raise NotFoundError("point not found")
        return review, point

    async def update(
        self,
        review_id: int,
        payload: ReviewUpdateRequest,
        user_id: str,
        *,
        is_admin: bool = False,
    ) -> ReviewDTO:
        changes = payload.model_dump(exclude_unset=True)
        if changes.get("rating", 0) is None:
            raise ValidationError("rating cannot be null")
        async with self._uow_factory() as uow:
            review, point = await self._authored(uow, review_id, user_id, is_admin)
            for field, value in changes.items():
                setattr(review, field, value)
            review.updated_at = utcnow()
            if "rating" in changes:
                await _refresh_statistics(uow, point)

        if "rating" in changes:
            await self._point_changed(point)
        return ReviewDTO.model_validate(review)

    async def remove(self, review_id: int, user_id: str, *, is_admin: bool = False) -> None:
        async with self._uow_factory() as uow:
            review, point = await self._authored(uow, review_id, user_id, is_admin)
            review.is_active = False
            review.updated_at = utcnow()
            await _refresh_statistics(uow, point)

        await self._point_changed(point)
        logger.info("review_removed", review_id=review_id, point_id=point.id)

    async def toggle_helpful(self, review_id: int, user_id: str) -> HelpfulToggleDTO:
        """Add the user's helpful vote, or take it back when it already exists."""

        async with self._uow_factory() as uow:
            review = await uow.reviews.get(review_id)
            if review is None or not review.is_active:
                raise NotFoundError("review not found")
            if await uow.reviews.has_vote(review_id, user_id):
                await uow.reviews.remove_vote(review_id, user_id)
                helpful = False
            else:
                await uow.reviews.add_vote(review_id, user_id)
                helpful = True
            count = await uow.reviews.count_votes(review_id)
            review.helpful_count = count
        return HelpfulToggleDTO(helpful=helpful, count=count)

    async def point_statistics(self, point_id: int) -> PointStatisticsDTO:
        async with self._uow_factory() as uow:
            point = await uow.points.get(point_id)
            if point is None or not point.is_active:
                raise NotFoundError("point not found")
            stats = await uow.reviews.rating_stats(point_id)
        distribution = {str(i): int(stats.distribution.get(i, 0)) for i in range(1, 6)}
        return PointStatisticsDTO(
            average_rating=stats.average_rating,
            total_reviews=stats.total_reviews,
            rating_distribution=distribution,
        )


__all__ = ["ReviewService"]
