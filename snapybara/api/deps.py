"""API dependency helpers and service providers."""

from fastapi import Request

from snapybara.container import ServiceContainer
from snapybara.services.auth import AuthUser, optional_user, require_admin, require_user
from snapybara.services.cache_store import CacheStore
from snapybara.services.collections import CollectionService
from snapybara.services.hybrid_search import HybridSearchEngine
from snapybara.services.notifications import NotificationService
from snapybara.services.places import PlacesClient
from snapybara.services.points import PointService
from snapybara.services.reviews import ReviewService
from snapybara.services.users import UserService

__all__ = [
    "AuthUser",
    "get_cache_store",
    "get_categories_from_query",
    "get_collection_service",
    "get_container",
    "get_notification_service",
    "get_places_client",
    "get_point_service",
    "get_review_service",
    "get_search_engine",
    "get_user_service",
    "optional_user",
    "require_admin",
    "require_user",
]


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


# --- Service providers for DI ---


def get_search_engine(request: Request) -> HybridSearchEngine:
    return get_container(request).search


def get_point_service(request: Request) -> PointService:
    return get_container(request).points


def get_review_service(request: Request) -> ReviewService:
    return get_container(request).reviews


def get_collection_service(request: Request) -> CollectionService:
    return get_container(request).collections


def get_notification_service(request: Request) -> NotificationService:
    return get_container(request).notifications


def get_user_service(request: Request) -> UserService:
    return get_container(request).users


def get_places_client(request: Request) -> PlacesClient:
    return get_container(request).places


def get_cache_store(request: Request) -> CacheStore:
    return get_container(request).cache


def get_categories_from_query(request: Request, categories: str | None = None) -> list[str]:
    """Collect categories from ``categories=csv``, ``category=...`` and ``category[]=...``."""

    qp = request.query_params
    raw: list[str] = []
    raw += qp.getlist("category")
    raw += qp.getlist("category[]")
    if categories:
        raw += categories.split(",")

    out: list[str] = []
    for value in raw:
        value = value.strip().lower()
        if value and value not in out:
            out.append(value)
    return out
