"""DTOs for reviews, collections and notifications."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from snapybara.dto.point import PointDTO
from snapybara.models.notification import NotificationPriority, NotificationType
from snapybara.models.review import ReviewStatus
from snapybara.schemas.notification import NotificationData


class ReviewDTO(BaseModel):
    id: int
    user_id: str
    point_id: int
    rating: int
    comment: str | None = None
    helpful_count: int = 0
    status: ReviewStatus = ReviewStatus.published
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class HelpfulToggleDTO(BaseModel):
    helpful: bool
    count: int


class PointStatisticsDTO(BaseModel):
    average_rating: float = 0.0
    total_reviews: int = 0
    rating_distribution: dict[str, int] = Field(
        default_factory=lambda: {str(i): 0 for i in range(1, 6)}
    )


class CollectionDTO(BaseModel):
    id: int
    user_id: str
    name: str
    description: str | None = None
    is_public: bool = True
    is_default: bool = False
    cover_photo_url: str | None = None
    points_count: int = 0
    followers_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class CollectionDetailDTO(CollectionDTO):
    points: list[PointDTO] = Field(default_factory=list, description="Points in position order")


class FollowToggleDTO(BaseModel):
    following: bool
    count: int


class NotificationDTO(BaseModel):
    id: int
    user_id: str
    type: NotificationType
    title: str
    message: str
    data: NotificationData | None = None
    priority: NotificationPriority = NotificationPriority.medium
    is_read: bool = False
    read_at: datetime | None = None
    expires_at: datetime | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class NotificationPageDTO(BaseModel):
    data: list[NotificationDTO]
    total: int = 0
    unread_count: int = 0
    page: int = 1
    limit: int = 20


class CountDTO(BaseModel):
    count: int = Field(description="Number of affected rows")
