# Imported for Alembic metadata discovery
# snapybara/models/__init__.py
from .base import Base
from .collection import Collection, CollectionFollower, CollectionPoint
from .notification import Notification, NotificationPriority, NotificationType
from .point import PointCategory, PointOfInterest, PointSource, PointStatus
from .review import Review, ReviewHelpfulVote, ReviewStatus
from .user import User, UserRole

__all__ = [
    "Base",
    "Collection",
    "CollectionFollower",
    "CollectionPoint",
    "Notification",
    "NotificationPriority",
    "NotificationType",
    "PointCategory",
    "PointOfInterest",
    "PointSource",
    "PointStatus",
    "Review",
    "ReviewHelpfulVote",
    "ReviewStatus",
    "User",
    "UserRole",
]
