"""SQLAlchemy implementation of the notification repository."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from snapybara.models import Notification
from snapybara.repositories.interfaces import NotificationRepository


class SqlAlchemyNotificationRepository(NotificationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, notification_id: int) -> Notification | None:
        return await self._session.get(Notification, int(notification_id))

    async def add(self, notification: Notification) -> Notification:
        self._session.add(notification)
        await self._session.flush()
        return notification

    async def list_for_user(
        self,
        user_id: str,
        *,
        is_read: bool | None,
        type_: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Notification], int]:
        base = select(Notification).where(Notification.user_id == user_id)
        if is_read is not None:
            base = base.where(Notification.is_read.is_(is_read))
        if type_:
            base = base.where(Notification.type == type_)

        total = (await self._session.scalar(select(func.count()).select_from(base.subquery()))) or 0
        stmt = (
            base.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list((await self._session.scalars(stmt)).all()), int(total)

    async def count_unread(self, user_id: str) -> int:
        stmt = select(func.count()).where(
            Notification.user_id == user_id, Notification.is_read.is_(False)
        )
        return int((await self._session.scalar(stmt)) or 0)

    async def mark_all_read(self, user_id: str, *, read_at: datetime) -> int:
        stmt = (
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=read_at)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return int(result.rowcount or 0)

    async def delete(self, notification: Notification) -> None:
        await self._session.delete(notification)

    async def delete_read_before(self, user_id: str, cutoff: datetime) -> int:
        stmt = delete(Notification).where(
            Notification.user_id == user_id,
            Notification.is_read.is_(True),
            Notification.created_at < cutoff,
        )
        result = await self._session.execute(stmt)
        return int(result.rowcount or 0)

    async def purge(self, *, cutoff: datetime, now: datetime) -> int:
        stmt = delete(Notification).where(
            or_(
                and_(Notification.is_read.is_(True), Notification.created_at < cutoff),
                Notification.expires_at < now,
            )
        )
        result = await self._session.execute(stmt)
        return int(result.rowcount or 0)
