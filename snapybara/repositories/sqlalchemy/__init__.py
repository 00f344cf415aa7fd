"""SQLAlchemy implementations of repository interfaces."""

from .collection import SqlAlchemyCollectionRepository
from .notification import SqlAlchemyNotificationRepository
from .point import SqlAlchemyPointRepository
from .review import SqlAlchemyReviewRepository
from .user import SqlAlchemyUserRepository

__all__ = [
    "SqlAlchemyCollectionRepository",
    "SqlAlchemyNotificationRepository",
    "SqlAlchemyPointRepository",
    "SqlAlchemyReviewRepository",
    "SqlAlchemyUserRepository",
]
