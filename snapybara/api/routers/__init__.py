"""Router modules exposed for convenient imports."""

from . import (
    cache,
    collections,
    healthz,
    me_favorites,
    notifications,
    places,
    points,
    readyz,
    reviews,
    users,
    webhooks,
)

__all__ = [
    "cache",
    "collections",
    "healthz",
    "me_favorites",
    "notifications",
    "places",
    "points",
    "readyz",
    "reviews",
    "users",
    "webhooks",
]
