"""Canonical cache keys for geographic queries and area-cell invalidation.

Search keys round coordinates to 3 decimals (~110 m) and bucket the radius,
so two queries that differ only below that precision share one entry. Area
cells round to 2 decimals (~1 km) and never depend on a query's radius; the
invalidation index maps each cell to the search keys served over it.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import NamedTuple
from urllib.parse import quote

from snapybara.utils.geo import bounding_box

MIN_RADIUS_M = 1
MAX_RADIUS_M = 50_000
RADIUS_STEP_M = 10

SEARCH_PRECISION = 3
AUTOCOMPLETE_PRECISION = 2
CELL_PRECISION = 2
CELL_RADIUS_M = 1_000
# Points this close (in degrees) to a cell edge also belong to the neighbour
CELL_BOUNDARY_MARGIN = 0.001

PLACES_NEARBY = "gp:search"
PLACES_TEXT = "gp:text"
PLACES_DETAILS = "gp:details"
PLACES_PHOTO = "gp:photos"
PLACES_AUTOCOMPLETE = "gp:autocomplete"
HYBRID_SEARCH = "points:search"
POINT_DETAILS = "points:details"
AREA_CELL = "area:cell"
AREA_INDEX = "area:index"

_CELL_SCALE = 10**CELL_PRECISION


class AreaCell(NamedTuple):
    lat_index: int
    lng_index: int

    @property
    def label(self) -> str:
        return f"{self.lat_index / _CELL_SCALE:.2f}:{self.lng_index / _CELL_SCALE:.2f}"

    @property
    def center(self) -> tuple[float, float]:
        return self.lat_index / _CELL_SCALE, self.lng_index / _CELL_SCALE


def _require_finite(*values: float) -> None:
    for value in values:
        if not math.isfinite(value):
            raise ValueError(f"non-finite coordinate or radius: {value!r}")


def _fmt(value: float, precision: int) -> str:
    # + 0.0 folds -0.0 into 0.0 so both render identically
    return f"{round(float(value), precision) + 0.0:.{precision}f}"


def _token(value: str) -> str:
    return quote(value, safe="_-.,")


def clamp_radius(radius_m: float) -> float:
    _require_finite(radius_m)
    return float(max(MIN_RADIUS_M, min(MAX_RADIUS_M, radius_m)))


def radius_bucket(radius_m: float) -> int:
    """Clamp then round the radius up to the next bucket step."""

    clamped = clamp_radius(radius_m)
    return min(MAX_RADIUS_M, int(math.ceil(clamped / RADIUS_STEP_M)) * RADIUS_STEP_M)


def normalize_categories(categories: Iterable[str] | None) -> tuple[str, ...]:
    if not categories:
        return ()
    return tuple(sorted({c.strip().lower() for c in categories if c and c.strip()}))


def normalize_keyword(keyword: str | None) -> str | None:
    if keyword is None:
        return None
    words = keyword.strip().lower().split()
    return " ".join(words) or None


def search_key(
    kind: str,
    lat: float,
    lng: float,
    radius_m: float,
    categories: Iterable[str] | None = None,
    keyword: str | None = None,
    viewer_id: str | None = None,
) -> str:
    _require_finite(lat, lng)
    parts = [
        kind,
        _fmt(lat, SEARCH_PRECISION),
        _fmt(lng, SEARCH_PRECISION),
        f"r{radius_bucket(radius_m)}",
    ]
    cats = normalize_categories(categories)
    parts.append("c" + (",".join(_token(c) for c in cats) if cats else "*"))
    kw = normalize_keyword(keyword)
    if kw:
        parts.append("k" + _token(kw))
    if viewer_id:
        parts.append("u" + _token(viewer_id))
    return ":".join(parts)


def text_search_key(
    query: str, lat: float | None = None, lng: float | None = None, radius_m: float | None = None
) -> str:
    if lat is not None and lng is not None:
        return search_key(
            PLACES_TEXT, lat, lng, radius_m or MAX_RADIUS_M, keyword=query or "-"
        )
    return f"{PLACES_TEXT}:k{_token(normalize_keyword(query) or '-')}:global"


def autocomplete_key(
    text: str, lat: float | None = None, lng: float | None = None, radius_m: float | None = None
) -> str:
    base = f"{PLACES_AUTOCOMPLETE}:k{_token(text.strip().lower())}"
    if lat is None or lng is None:
        return f"{base}:global"
    _require_finite(lat, lng)
    return (
        f"{base}:{_fmt(lat, AUTOCOMPLETE_PRECISION)}:{_fmt(lng, AUTOCOMPLETE_PRECISION)}"
        f":r{radius_bucket(radius_m or MAX_RADIUS_M)}"
    )


def place_details_key(place_id: str) -> str:
    return f"{PLACES_DETAILS}:{_token(place_id)}"


def photo_key(photo_reference: str, max_width: int) -> str:
    return f"{PLACES_PHOTO}:{_token(photo_reference)}:w{int(max_width)}"


def point_details_key(point_id: int) -> str:
    return f"{POINT_DETAILS}:{int(point_id)}"


def area_cell(lat: float, lng: float) -> AreaCell:
    _require_finite(lat, lng)
    return AreaCell(int(round(lat * _CELL_SCALE)), int(round(lng * _CELL_SCALE)))


def area_cell_key(cell: AreaCell) -> str:
    return f"{AREA_CELL}:{cell.label}:r{CELL_RADIUS_M}"


def area_index_key(cell: AreaCell) -> str:
    return f"{AREA_INDEX}:{cell.label}"


def cells_in_box(min_lat: float, min_lng: float, max_lat: float, max_lng: float) -> list[AreaCell]:
    low = area_cell(min_lat, min_lng)
    high = area_cell(max_lat, max_lng)
    return [
        AreaCell(i, j)
        for i in range(low.lat_index, high.lat_index + 1)
        for j in range(low.lng_index, high.lng_index + 1)
    ]


def neighbourhood(cell: AreaCell) -> list[AreaCell]:
    """The cell and its eight neighbours."""

    return [
        AreaCell(cell.lat_index + di, cell.lng_index + dj)
        for di in (-1, 0, 1)
        for dj in (-1, 0, 1)
    ]


def cells_for_point(lat: float, lng: float, margin: float = CELL_BOUNDARY_MARGIN) -> list[AreaCell]:
    """Cells a point belongs to: its own, plus neighbours when it sits near an edge."""

    return cells_in_box(lat - margin, lng - margin, lat + margin, lng + margin)


def cells_for_search(lat: float, lng: float, radius_m: float, max_cells: int) -> list[AreaCell]:
    """Cells a radius query overlaps.

    Above ``max_cells`` only the centre neighbourhood is returned, so very
    large radii can be under-invalidated until their entries expire.
    """

    min_lat, min_lng, max_lat, max_lng = bounding_box(lat, lng, clamp_radius(radius_m))
    low = area_cell(min_lat, min_lng)
    high = area_cell(max_lat, max_lng)
    count = (high.lat_index - low.lat_index + 1) * (high.lng_index - low.lng_index + 1)
    if count > max_cells:
        return neighbourhood(area_cell(lat, lng))
    return cells_in_box(min_lat, min_lng, max_lat, max_lng)


__all__ = [
    "AREA_CELL",
    "AREA_INDEX",
    "AreaCell",
    "CELL_RADIUS_M",
    "HYBRID_SEARCH",
    "MAX_RADIUS_M",
    "MIN_RADIUS_M",
    "PLACES_AUTOCOMPLETE",
    "PLACES_DETAILS",
    "PLACES_NEARBY",
    "PLACES_PHOTO",
    "PLACES_TEXT",
    "POINT_DETAILS",
    "area_cell",
    "area_cell_key",
    "area_index_key",
    "autocomplete_key",
    "cells_for_point",
    "cells_for_search",
    "cells_in_box",
    "clamp_radius",
    "neighbourhood",
    "normalize_categories",
    "normalize_keyword",
    "photo_key",
    "place_details_key",
    "point_details_key",
    "radius_bucket",
    "search_key",
    "text_search_key",
]
