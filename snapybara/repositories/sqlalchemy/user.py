"""SQLAlchemy implementation of the user repository."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from snapybara.models import User
from snapybara.repositories.interfaces import UserRepository


class SqlAlchemyUserRepository(UserRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str) -> User | None:
        return await self._session.get(User, user_id)

    async def add(self, user: User) -> User:
        self._session.add(user)
        await self._session.flush()
        return user
