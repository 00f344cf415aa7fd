"""DTOs for the caller's profile."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from snapybara.models.user import UserRole


class UserProfileDTO(BaseModel):
    id: str
    email: str | None = None
    username: str | None = None
    avatar_url: str | None = None
    role: UserRole = UserRole.user
    is_active: bool = True
    synced: bool = Field(default=False, description="A local user record exists")
    claims: dict[str, Any] = Field(default_factory=dict, description="Identity provider claims")
