"""DTOs for point detail and hybrid search responses."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from snapybara.models.point import PointCategory, PointSource, PointStatus
from snapybara.schemas.point import PointMetadata


class PointDTO(BaseModel):
    id: int
    user_id: str | None = None
    name: str
    description: str | None = None
    latitude: float
    longitude: float
    category: PointCategory
    tags: list[str] = Field(default_factory=list)
    formatted_address: str | None = None
    average_rating: float = 0.0
    review_count: int = 0
    photo_count: int = 0
    view_count: int = 0
    is_public: bool = True
    is_active: bool = True
    status: PointStatus
    source: PointSource
    external_place_id: str | None = None
    metadata: PointMetadata | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PointSummaryDTO(BaseModel):
    """One merged search result; external-only results carry no local id."""

    id: int | None = Field(default=None, description="Local id, null for external results")
    external_id: str | None = Field(default=None, description="Provider place id")
    name: str
    description: str | None = None
    latitude: float
    longitude: float
    category: PointCategory
    tags: list[str] = Field(default_factory=list)
    formatted_address: str | None = None
    average_rating: float | None = None
    review_count: int = 0
    photo_count: int = 0
    distance_m: float = Field(description="Distance from the query centre in metres")
    source: PointSource
    status: PointStatus | None = None
    is_public: bool | None = None
    metadata: PointMetadata | None = None


class ImportSummaryDTO(BaseModel):
    imported: int = 0
    skipped: int = 0
    errors: int = 0
