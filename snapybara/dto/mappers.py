"""Mapping helpers from ORM rows to response DTOs."""

from __future__ import annotations

from typing import Any

from snapybara.dto.point import PointDTO, PointSummaryDTO
from snapybara.dto.social import NotificationDTO
from snapybara.models.point import PointSource
from snapybara.schemas.notification import NotificationData
from snapybara.schemas.place import Place
from snapybara.schemas.point import PointMetadata


def point_metadata(raw: dict[str, Any] | None) -> PointMetadata | None:
    if not raw:
        return None
    return PointMetadata.model_validate(raw)


def place_metadata(place: Place) -> PointMetadata:
    return PointMetadata(
        provider=place.source.value,
        external_types=list(place.types),
        rating=place.rating,
        rating_count=place.rating_count,
        price_level=place.price_level,
        business_status=place.business_status,
        website=place.website,
        phone=place.phone,
        photo_references=list(place.photo_references),
    )


def to_point_dto(point: Any) -> PointDTO:
    return PointDTO(
        id=int(point.id),
        user_id=point.user_id,
        name=point.name,
        description=point.description,
        latitude=float(point.latitude),
        longitude=float(point.longitude),
        category=point.category,
        tags=list(point.tags or []),
        formatted_address=point.formatted_address,
        average_rating=float(point.average_rating or 0.0),
        review_count=int(point.review_count or 0),
        photo_count=int(point.photo_count or 0),
        view_count=int(point.view_count or 0),
        is_public=bool(point.is_public),
        is_active=bool(point.is_active),
        status=point.status,
        source=point.source,
        external_place_id=point.external_place_id,
        metadata=point_metadata(point.external_metadata),
        created_at=getattr(point, "created_at", None),
        updated_at=getattr(point, "updated_at", None),
    )


def local_summary(point: Any, distance_m: float) -> PointSummaryDTO:
    return PointSummaryDTO(
        id=int(point.id),
        external_id=point.external_place_id,
        name=point.name,
        description=point.description,
        latitude=float(point.latitude),
        longitude=float(point.longitude),
        category=point.category,
        tags=list(point.tags or []),
        formatted_address=point.formatted_address,
        average_rating=float(point.average_rating or 0.0),
        review_count=int(point.review_count or 0),
        photo_count=int(point.photo_count or 0),
        distance_m=round(float(distance_m), 1),
        source=PointSource.local,
        status=point.status,
        is_public=bool(point.is_public),
        metadata=point_metadata(point.external_metadata),
    )


def external_summary(place: Place, distance_m: float) -> PointSummaryDTO:
    """Lossy conversion of a provider place into the local result shape."""

    return PointSummaryDTO(
        id=None,
        external_id=place.place_id,
        name=place.name,
        description=place.summary,
        latitude=place.latitude,
        longitude=place.longitude,
        category=place.category,
        formatted_address=place.formatted_address,
        average_rating=place.rating,
        review_count=int(place.rating_count or 0),
        photo_count=len(place.photo_references),
        distance_m=round(float(distance_m), 1),
        source=place.source,
        metadata=place_metadata(place),
    )


def to_notification_dto(notification: Any) -> NotificationDTO:
    data = NotificationData.model_validate(notification.data) if notification.data else None
    return NotificationDTO(
        id=int(notification.id),
        user_id=notification.user_id,
        type=notification.type,
        title=notification.title,
        message=notification.message,
        data=data,
        priority=notification.priority,
        is_read=bool(notification.is_read),
        read_at=notification.read_at,
        expires_at=notification.expires_at,
        created_at=getattr(notification, "created_at", None),
    )
