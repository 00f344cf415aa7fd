"""Local user records mirrored from identity-provider webhooks."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

from snapybara.core.exceptions import ValidationError
from snapybara.dto import UserProfileDTO
from snapybara.infra.unit_of_work import UnitOfWork
from snapybara.models import User, UserRole
from snapybara.schemas.user import IdentityRecord, IdentityWebhookEvent
from snapybara.services.auth import AuthUser
from snapybara.utils.datetime import utcnow

logger = structlog.get_logger(__name__)

UnitOfWorkFactory = Callable[[], UnitOfWork]


def _first(meta: dict[str, Any], *names: str) -> str | None:
    for name in names:
        value = meta.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _role(record: IdentityRecord) -> str:
    raw = record.raw_app_meta_data.get("role")
    if raw in {r.value for r in UserRole}:
        return raw
    return UserRole.user.value


class UserService:
    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def apply_event(self, event: IdentityWebhookEvent) -> str:
        """Upsert on INSERT/UPDATE, deactivate on DELETE. Returns the action taken."""

        if event.type == "DELETE":
            record = event.old_record or event.record
            if record is None:
                raise ValidationError("DELETE event without old_record")
            async with self._uow_factory() as uow:
                user = await uow.users.get(record.id)
                if user is None:
                    action = "ignored"
                else:
                    user.is_active = False
                    user.updated_at = utcnow()
                    action = "deactivated"
            logger.info("identity_event_applied", type=event.type, user_id=record.id, action=action)
            return action

        record = event.record
        if record is None:
            raise ValidationError(f"{event.type} event without record")
        meta = record.raw_user_meta_data
        async with self._uow_factory() as uow:
            user = await uow.users.get(record.id)
            if user is None:
                user = User(id=record.id)
                action = "created"
            else:
                action = "updated"
            user.email = record.email
            user.username = _first(meta, "username", "user_name", "full_name", "name")
            user.avatar_url = _first(meta, "avatar_url", "picture")
            user.role = _role(record)
            user.is_active = True
            user.updated_at = utcnow()
            if action == "created":
                await uow.users.add(user)
        logger.info("identity_event_applied", type=event.type, user_id=record.id, action=action)
        return action

    async def get_profile(self, auth_user: AuthUser) -> UserProfileDTO:
        async with self._uow_factory() as uow:
            user = await uow.users.get(auth_user.id)
        if user is None:
            return UserProfileDTO(
                id=auth_user.id,
                email=auth_user.email,
                role=auth_user.role,
                synced=False,
                claims=auth_user.claims,
            )
        return UserProfileDTO(
            id=user.id,
            email=user.email or auth_user.email,
            username=user.username,
            avatar_url=user.avatar_url,
            role=UserRole(user.role),
            is_active=bool(user.is_active),
            synced=True,
            claims=auth_user.claims,
        )


__all__ = ["UserService"]
