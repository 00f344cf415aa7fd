from __future__ import annotations

from pydantic import BaseModel, Field


class CollectionCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    is_public: bool = True
    is_default: bool = False
    cover_photo_url: str | None = None


class CollectionUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    is_public: bool | None = None
    is_default: bool | None = None
    cover_photo_url: str | None = None


class CollectionPointRequest(BaseModel):
    point_id: int = Field(ge=1)


class FavoriteCreateRequest(BaseModel):
    point_id: int = Field(ge=1, description="Point to add to the default collection")
