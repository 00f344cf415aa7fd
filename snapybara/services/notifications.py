"""Notification use cases and the helpers other services call inside their unit of work."""

from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta

import structlog

from snapybara.core.exceptions import NotFoundError, ValidationError
from snapybara.dto import CountDTO, NotificationDTO, NotificationPageDTO
from snapybara.dto.mappers import to_notification_dto
from snapybara.infra.unit_of_work import UnitOfWork
from snapybara.models import (
    Collection,
    Notification,
    NotificationPriority,
    NotificationType,
    PointOfInterest,
    PointStatus,
    Review,
)
from snapybara.schemas.notification import NotificationCreateRequest, NotificationData
from snapybara.utils.datetime import utcnow

logger = structlog.get_logger(__name__)

UnitOfWorkFactory = Callable[[], UnitOfWork]

DEFAULT_RETENTION_DAYS = 30


class NotificationService:
    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def create(self, payload: NotificationCreateRequest) -> NotificationDTO:
        async with self._uow_factory() as uow:
            notification = await _add(
                uow,
                user_id=payload.user_id,
                type_=payload.type,
                title=payload.title,
                message=payload.message,
                data=payload.data,
                priority=payload.priority,
                expires_at=payload.expires_at,
            )
            return to_notification_dto(notification)

    async def list(
        self,
        user_id: str,
        *,
        is_read: bool | None = None,
        type_: NotificationType | str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> NotificationPageDTO:
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be >= 1")
        type_value = NotificationType(type_).value if type_ else None
        async with self._uow_factory() as uow:
            rows, total = await uow.notifications.list_for_user(
                user_id,
                is_read=is_read,
                type_=type_value,
                limit=limit,
                offset=(page - 1) * limit,
            )
            unread = await uow.notifications.count_unread(user_id)
            return NotificationPageDTO(
                data=[to_notification_dto(n) for n in rows],
                total=total,
                unread_count=unread,
                page=page,
                limit=limit,
            )

    async def _owned(self, uow: UnitOfWork, notification_id: int, user_id: str) -> Notification:
        notification = await uow.notifications.get(notification_id)
        # Someone else's notification is reported as missing
        if notification is None or notification.user_id != user_id:
            raise NotFoundError("notification not found")
        return notification

    async def mark_read(self, notification_id: int, user_id: str) -> NotificationDTO:
        async with self._uow_factory() as uow:
            notification = await self._owned(uow, notification_id, user_id)
            if not notification.is_read:
                notification.is_read = True
                notification.read_at = utcnow()
            return to_notification_dto(notification)

    async def mark_all_read(self, user_id: str) -> CountDTO:
        async with self._uow_factory() as uow:
            count = await uow.notifications.mark_all_read(user_id, read_at=utcnow())
        return CountDTO(count=count)

    async def delete(self, notification_id: int, user_id: str) -> None:
        async with self._uow_factory() as uow:
            notification = await self._owned(uow, notification_id, user_id)
            await uow.notifications.delete(notification)

    async def clear_old(
        self, user_id: str, days_to_keep: int = DEFAULT_RETENTION_DAYS
    ) -> CountDTO:
        """Delete the user's read notifications older than ``days_to_keep`` days."""

        if days_to_keep < 0:
            raise ValidationError("days_to_keep must be >= 0")
        cutoff = utcnow() - timedelta(days=days_to_keep)
        async with self._uow_factory() as uow:
            count = await uow.notifications.delete_read_before(user_id, cutoff)
        return CountDTO(count=count)

    async def purge_expired(self, retention_days: int = DEFAULT_RETENTION_DAYS) -> int:
        now = utcnow()
        async with self._uow_factory() as uow:
            count = await uow.notifications.purge(
                cutoff=now - timedelta(days=retention_days), now=now
            )
        logger.info("notifications_purged", count=count, retention_days=retention_days)
        return count


async def _add(
    uow: UnitOfWork,
    *,
    user_id: str,
    type_: NotificationType,
    title: str,
    message: str,
    data: NotificationData | None = None,
    priority: NotificationPriority = NotificationPriority.medium,
    expires_at=None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=NotificationType(type_).value,
        title=title,
        message=message,
        data=data.model_dump(mode="json", exclude_none=True) if data else None,
        priority=NotificationPriority(priority).value,
        expires_at=expires_at,
    )
    return await uow.notifications.add(notification)


async def notify_new_review(
    uow: UnitOfWork, *, point: PointOfInterest, review: Review
) -> Notification | None:
    """Tell the point owner about a new review; nobody is told about their own."""

    if not point.user_id or point.user_id == review.user_id:
        return None
    return await _add(
        uow,
        user_id=point.user_id,
        type_=NotificationType.review_on_point,
        title="New review",
        message=f'Your point "{point.name}" received a {review.rating}-star review.',
        data=NotificationData(
            entity_type="point",
            entity_id=str(point.id),
            from_user_id=review.user_id,
            action_url=f"/points/{point.id}",
        ),
    )


async def notify_point_moderated(
    uow: UnitOfWork,
    *,
    point: PointOfInterest,
    status: PointStatus,
    reason: str | None = None,
) -> Notification | None:
    if not point.user_id or status is PointStatus.pending:
        return None
    if status is PointStatus.approved:
        type_ = NotificationType.point_approved
        title = "Point approved"
        message = f'Your point "{point.name}" is now public.'
        priority = NotificationPriority.medium
    else:
        type_ = NotificationType.point_rejected
        title = "Point rejected"
        message = f'Your point "{point.name}" was rejected.'
        if reason:
            message = f"{message} Reason: {reason}"
        priority = NotificationPriority.high
    return await _add(
        uow,
        user_id=point.user_id,
        type_=type_,
        title=title,
        message=message,
        data=NotificationData(
            entity_type="point", entity_id=str(point.id), action_url=f"/points/{point.id}"
        ),
        priority=priority,
    )


async def notify_new_follower(
    uow: UnitOfWork, *, collection: Collection, follower_id: str
) -> Notification | None:
    if collection.user_id == follower_id:
        return None
    return await _add(
        uow,
        user_id=collection.user_id,
        type_=NotificationType.new_follower,
        title="New follower",
        message=f'Someone started following your collection "{collection.name}".',
        data=NotificationData(
            entity_type="collection",
            entity_id=str(collection.id),
            from_user_id=follower_id,
            action_url=f"/collections/{collection.id}",
        ),
        priority=NotificationPriority.low,
    )


__all__ = [
    "NotificationService",
    "notify_new_follower",
    "notify_new_review",
    "notify_point_moderated",
]
