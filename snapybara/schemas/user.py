from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class IdentityRecord(BaseModel):
    id: str
    email: str | None = None
    raw_user_meta_data: dict[str, Any] = Field(default_factory=dict)
    raw_app_meta_data: dict[str, Any] = Field(default_factory=dict)


class IdentityWebhookEvent(BaseModel):
    """Database webhook payload sent by the identity provider on auth.users changes."""

    type: Literal["INSERT", "UPDATE", "DELETE"]
    table: str = "users"
    record: IdentityRecord | None = None
    old_record: IdentityRecord | None = None
