"""Geospatial helpers shared by the search and cache layers."""

from __future__ import annotations

import math

LatLng = tuple[float, float]

EARTH_RADIUS_M = 6_371_000.0
METERS_PER_DEGREE_LAT = 111_320.0


def haversine_distance_m(point_a: LatLng, point_b: LatLng) -> float:
    """Great-circle distance between two (lat, lng) pairs in metres.

    Mirrors the SQL expression used by the point repository and clamps the
    intermediate value to avoid floating point drift near the poles.
    """

    lat1, lng1 = point_a
    lat2, lng2 = point_b

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = phi2 - phi1
    dlambda = math.radians(lng2 - lng1)

    a = math.sin(dphi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2.0) ** 2
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_M * 2.0 * math.asin(math.sqrt(a))


def bounding_box(lat: float, lng: float, radius_m: float) -> tuple[float, float, float, float]:
    """Return (min_lat, min_lng, max_lat, max_lng) enclosing a circle of ``radius_m``."""

    dlat = radius_m / METERS_PER_DEGREE_LAT
    cos_lat = max(math.cos(math.radians(lat)), 1e-6)
    dlng = min(180.0, radius_m / (METERS_PER_DEGREE_LAT * cos_lat))
    return (
        max(-90.0, lat - dlat),
        max(-180.0, lng - dlng),
        min(90.0, lat + dlat),
        min(180.0, lng + dlng),
    )


def is_valid_coordinate(lat: float, lng: float) -> bool:
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


__all__ = [
    "EARTH_RADIUS_M",
    "LatLng",
    "bounding_box",
    "haversine_distance_m",
    "is_valid_coordinate",
]
