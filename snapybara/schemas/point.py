from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from snapybara.models.point import PointCategory, PointStatus


class PointMetadata(BaseModel):
    """Provider fields carried on a local point; unknown keys are rejected."""

    provider: str | None = None
    external_types: list[str] = Field(default_factory=list)
    rating: float | None = None
    rating_count: int | None = None
    price_level: int | None = Field(default=None, ge=0, le=4)
    business_status: str | None = None
    website: str | None = None
    phone: str | None = None
    photo_references: list[str] = Field(default_factory=list)
    imported_at: datetime | None = None

    model_config = ConfigDict(extra="forbid")


def _clean_tags(tags: list[str] | None) -> list[str] | None:
    if tags is None:
        return None
    seen: list[str] = []
    for tag in tags:
        t = tag.strip().lower()
        if t and t not in seen:
            seen.append(t)
    return seen


class PointCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    category: PointCategory = PointCategory.other
    tags: list[str] = Field(default_factory=list, max_length=20)
    formatted_address: str | None = Field(default=None, max_length=500)
    is_public: bool = True

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: list[str] | None) -> list[str] | None:
        return _clean_tags(value)


class PointUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    category: PointCategory | None = None
    tags: list[str] | None = Field(default=None, max_length=20)
    formatted_address: str | None = Field(default=None, max_length=500)
    is_public: bool | None = None

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: list[str] | None) -> list[str] | None:
        return _clean_tags(value)


class PointStatusUpdateRequest(BaseModel):
    status: PointStatus
    reason: str | None = Field(default=None, max_length=500)


class PlaceImportRequest(BaseModel):
    place_id: str = Field(min_length=1, max_length=255)


class AreaImportRequest(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    radius_km: float = Field(default=5.0, gt=0, le=50)
    max_places: int = Field(default=50, ge=1, le=200)
