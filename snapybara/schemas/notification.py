from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from snapybara.models.notification import NotificationPriority, NotificationType


class NotificationData(BaseModel):
    """Typed payload attached to a notification."""

    entity_type: str | None = None
    entity_id: str | None = None
    from_user_id: str | None = None
    image_url: str | None = None
    action_url: str | None = None

    model_config = ConfigDict(extra="forbid")


class NotificationCreateRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)
    type: NotificationType
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=2000)
    data: NotificationData | None = None
    priority: NotificationPriority = NotificationPriority.medium
    expires_at: datetime | None = None
