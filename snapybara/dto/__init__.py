"""Public DTO exports for FastAPI response models."""

from .point import ImportSummaryDTO, PointDTO, PointSummaryDTO
from .search import HybridSearchPageDTO, SearchSourcesDTO
from .social import (
    CollectionDetailDTO,
    CollectionDTO,
    CountDTO,
    FollowToggleDTO,
    HelpfulToggleDTO,
    NotificationDTO,
    NotificationPageDTO,
    PointStatisticsDTO,
    ReviewDTO,
)
from .user import UserProfileDTO

__all__ = [
    "CollectionDTO",
    "CollectionDetailDTO",
    "CountDTO",
    "FollowToggleDTO",
    "HelpfulToggleDTO",
    "HybridSearchPageDTO",
    "ImportSummaryDTO",
    "NotificationDTO",
    "NotificationPageDTO",
    "PointDTO",
    "PointStatisticsDTO",
    "PointSummaryDTO",
    "ReviewDTO",
    "SearchSourcesDTO",
    "UserProfileDTO",
]
