from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import DOUBLE_PRECISION, JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from snapybara.models.base import Base
from snapybara.utils.datetime import utcnow


class PointCategory(str, Enum):
    mountain = "mountain"
    forest = "forest"
    waterfall = "waterfall"
    beach = "beach"
    landscape = "landscape"
    religious = "religious"
    historical = "historical"
    architecture = "architecture"
    urban = "urban"
    other = "other"


class PointStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class PointSource(str, Enum):
    local = "local"
    places_provider = "places_provider"
    open_map = "open_map"


class PointOfInterest(Base):
    __tablename__ = "points_of_interest"
    __table_args__ = (
        Index("ix_points_lat_lng", "latitude", "longitude"),
        Index("ix_points_visibility", "is_active", "status", "is_public"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # Null for points imported from an external provider
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    latitude: Mapped[float] = mapped_column(DOUBLE_PRECISION, nullable=False)
    longitude: Mapped[float] = mapped_column(DOUBLE_PRECISION, nullable=False)
    category: Mapped[str] = mapped_column(
        String(32), nullable=False, default=PointCategory.other.value, server_default="other"
    )
    tags: Mapped[list] = mapped_column(JSONB, nullable=False, default=list, server_default="[]")
    formatted_address: Mapped[str | None] = mapped_column(String, nullable=True)

    average_rating: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0, server_default="0"
    )
    review_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    photo_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    is_public: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=PointStatus.pending.value, server_default="pending"
    )
    source: Mapped[str] = mapped_column(
        String(32), nullable=False, default=PointSource.local.value, server_default="local"
    )
    external_place_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    # Written from snapybara.schemas.point.PointMetadata only
    external_metadata: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )
