"""Provider vocabulary → local categories, relevance filtering and response parsing."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from snapybara.models.point import PointCategory
from snapybara.schemas.place import Place, Prediction

logger = structlog.get_logger(__name__)

# Highest priority first
CATEGORY_PRIORITY: tuple[PointCategory, ...] = (
    PointCategory.mountain,
    PointCategory.forest,
    PointCategory.waterfall,
    PointCategory.beach,
    PointCategory.religious,
    PointCategory.historical,
    PointCategory.architecture,
    PointCategory.landscape,
    PointCategory.urban,
    PointCategory.other,
)
_RANK = {category: rank for rank, category in enumerate(CATEGORY_PRIORITY)}

TYPE_CATEGORIES: dict[PointCategory, frozenset[str]] = {
    PointCategory.mountain: frozenset({"mountain", "hill", "peak", "hiking_area"}),
    PointCategory.landscape: frozenset(
        {
            "natural_feature",
            "scenic_point",
            "viewpoint",
            "park",
            "botanical_garden",
            "garden",
            "tourist_attraction",
            "point_of_interest",
            "zoo",
            "aquarium",
        }
    ),
    PointCategory.forest: frozenset({"forest", "national_park", "campground"}),
    PointCategory.waterfall: frozenset({"waterfall", "lake", "river"}),
    PointCategory.beach: frozenset({"beach", "marina"}),
    PointCategory.architecture: frozenset(
        {
            "train_station",
            "transit_station",
            "bus_station",
            "subway_station",
            "premise",
            "city_hall",
            "courthouse",
            "embassy",
            "library",
            "university",
            "school",
            "establishment",
        }
    ),
    PointCategory.religious: frozenset(
        {"church", "mosque", "synagogue", "hindu_temple", "place_of_worship", "cemetery"}
    ),
    PointCategory.historical: frozenset(
        {"museum", "art_gallery", "historical_landmark", "historical_place", "landmark"}
    ),
    PointCategory.urban: frozenset(
        {
            "shopping_mall",
            "neighborhood",
            "sublocality",
            "locality",
            "route",
            "street_address",
            "plaza",
            "square",
        }
    ),
}

GENERIC_TYPES = frozenset({"point_of_interest", "establishment"})

EXCLUDED_TYPES = frozenset(
    {
        "accounting",
        "atm",
        "bank",
        "car_dealer",
        "car_rental",
        "car_repair",
        "car_wash",
        "convenience_store",
        "dentist",
        "doctor",
        "drugstore",
        "electrician",
        "electronics_store",
        "finance",
        "gas_station",
        "grocery_or_supermarket",
        "gym",
        "hair_care",
        "hardware_store",
        "health",
        "home_goods_store",
        "hospital",
        "insurance_agency",
        "laundry",
        "lawyer",
        "locksmith",
        "lodging",
        "meal_delivery",
        "meal_takeaway",
        "moving_company",
        "painter",
        "pharmacy",
        "physiotherapist",
        "plumber",
        "post_office",
        "real_estate_agency",
        "roofing_contractor",
        "shoe_store",
        "shopping_mall",
        "spa",
        "store",
        "supermarket",
        "taxi_stand",
        "travel_agency",
        "veterinary_care",
    }
)

NATURE_AND_TOURIST_TYPES = frozenset(
    {
        "tourist_attraction",
        "natural_feature",
        "park",
        "hiking_area",
        "campground",
        "national_park",
        "scenic_point",
        "mountain",
        "hill",
        "lake",
        "river",
        "waterfall",
        "beach",
        "forest",
        "viewpoint",
        "landmark",
    }
)

# Types requested from the nearby endpoint when no category filter is given
DEFAULT_NEARBY_TYPES: tuple[str, ...] = (
    "tourist_attraction",
    "park",
    "hiking_area",
    "national_park",
    "museum",
    "church",
    "historical_landmark",
    "beach",
    "campground",
    "botanical_garden",
)

RELEVANT_PREDICTION_TYPES = frozenset(
    {
        "geocode",
        "locality",
        "sublocality",
        "natural_feature",
        "point_of_interest",
        "establishment",
        "tourist_attraction",
        "park",
        "museum",
        "church",
        "route",
        "premise",
    }
)

PRICE_LEVELS = {
    "PRICE_LEVEL_FREE": 0,
    "PRICE_LEVEL_INEXPENSIVE": 1,
    "PRICE_LEVEL_MODERATE": 2,
    "PRICE_LEVEL_EXPENSIVE": 3,
    "PRICE_LEVEL_VERY_EXPENSIVE": 4,
}


def _words(*keywords: str) -> re.Pattern[str]:
    alternation = "|".join(re.escape(k) for k in keywords)
    return re.compile(rf"(?<!\w)(?:{alternation})s?(?!\w)", re.IGNORECASE)


# Checked in category priority order
NAME_KEYWORDS: tuple[tuple[PointCategory, re.Pattern[str]], ...] = (
    (
        PointCategory.mountain,
        _words(
            "pic", "mont", "sommet", "col", "crête", "peak", "mountain", "hill", "puy", "aiguille"
        ),
    ),
    (PointCategory.forest, _words("forêt", "foret", "forest", "bois", "wood", "arbre", "tree")),
    (
        PointCategory.waterfall,
        _words("cascade", "chute", "fall", "lac", "lake", "rivière", "river", "source", "cirque"),
    ),
    (
        PointCategory.beach,
        _words("plage", "beach", "mer", "sea", "océan", "ocean", "côte", "coast"),
    ),
    (
        PointCategory.religious,
        _words(
            "église",
            "eglise",
            "church",
            "cathédrale",
            "cathedral",
            "abbaye",
            "abbey",
            "chapelle",
            "chapel",
            "mosquée",
            "mosque",
            "temple",
            "synagogue",
        ),
    ),
    (
        PointCategory.historical,
        _words(
            "château",
            "chateau",
            "castle",
            "fort",
            "musée",
            "museum",
            "monument",
            "historic",
            "historique",
            "ancient",
            "vieux",
            "old",
        ),
    ),
    (
        PointCategory.landscape,
        _words(
            "parc",
            "park",
            "jardin",
            "garden",
            "esplanade",
            "promenade",
            "botanical",
            "viewpoint",
            "vue",
            "belvédère",
            "belvedere",
            "panorama",
            "vista",
            "lookout",
            "mirador",
            "view",
        ),
    ),
)

# Place names that contain "mont" as a word without being a summit
MOUNTAIN_NAME_EXCLUSIONS = ("montcalm", "montpellier", "montreal", "montréal", "montgomery")

NATURE_NAME_KEYWORDS = _words(
    "pic",
    "mont",
    "vue",
    "viewpoint",
    "panorama",
    "belvédère",
    "cascade",
    "lac",
    "parc",
    "jardin",
    "nature",
    "site",
)

_GENERIC_NATURE_WORDS = _words(
    "nature", "natural", "réserve", "reserve", "site", "gorge", "canyon"
)
_GENERIC_NATURE_TYPES = frozenset({"establishment", "point_of_interest", "tourist_attraction"})


def map_types_to_category(types: Iterable[str]) -> PointCategory | None:
    """Highest-priority category any of ``types`` maps to, or None."""

    best: PointCategory | None = None
    for t in types:
        for category, members in TYPE_CATEGORIES.items():
            if t in members and (best is None or _RANK[category] < _RANK[best]):
                best = category
    return best


def category_from_name(name: str, types: Iterable[str] = ()) -> PointCategory | None:
    lowered = name.lower()
    for category, pattern in NAME_KEYWORDS:
        if not pattern.search(lowered):
            continue
        if category is PointCategory.mountain and any(
            ex in lowered for ex in MOUNTAIN_NAME_EXCLUSIONS
        ):
            continue
        return category
    if _GENERIC_NATURE_TYPES.intersection(types) and _GENERIC_NATURE_WORDS.search(lowered):
        return PointCategory.landscape
    return None


def categorize(name: str, types: Iterable[str]) -> PointCategory:
    """Type-based category, overridden by a name keyword when one matches.

    Places whose types map to nothing default to landscape.
    """

    type_list = list(types)
    by_name = category_from_name(name or "", type_list)
    if by_name is not None:
        return by_name
    return map_types_to_category(type_list) or PointCategory.landscape


def has_nature_signal(name: str, types: Iterable[str]) -> bool:
    if NATURE_AND_TOURIST_TYPES.intersection(types):
        return True
    return bool(NATURE_NAME_KEYWORDS.search((name or "").lower()))


def is_relevant(name: str, types: Iterable[str]) -> bool:
    """False only when every specific type is excluded and nothing signals nature."""

    specific = [t for t in types if t not in GENERIC_TYPES]
    if not specific:
        return True
    if not all(t in EXCLUDED_TYPES for t in specific):
        return True
    return has_nature_signal(name, specific)


def _number(value: Any, cast: type) -> Any:
    """Cast a provider number, dropping values that are not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return cast(value)
    except (TypeError, ValueError):
        return None


def _text(value: Any) -> str | None:
    if isinstance(value, Mapping):
        value = value.get("text")
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_place(raw: Mapping[str, Any]) -> Place | None:
    """Normalize one Places API (v1) place object; None when unusable."""

    place_id = raw.get("id")
    location = raw.get("location") or {}
    name = _text(raw.get("displayName"))
    try:
        lat = float(location["latitude"])
        lng = float(location["longitude"])
    except (KeyError, TypeError, ValueError):
        return None
    if not place_id or not name:
        return None

    types = [str(t) for t in raw.get("types") or []]
    photos = [p.get("name") for p in raw.get("photos") or [] if isinstance(p, Mapping)]
    rating = raw.get("rating")
    rating_count = raw.get("userRatingCount")
    return Place(
        place_id=str(place_id),
        name=name,
        latitude=lat,
        longitude=lng,
        category=categorize(name, types),
        types=types,
        formatted_address=raw.get("formattedAddress"),
        rating=_number(rating, float),
        rating_count=_number(rating_count, int),
        price_level=PRICE_LEVELS.get(str(raw.get("priceLevel"))),
        business_status=raw.get("businessStatus"),
        website=raw.get("websiteUri"),
        phone=raw.get("internationalPhoneNumber") or raw.get("nationalPhoneNumber"),
        summary=_text(raw.get("editorialSummary")),
        photo_references=[p for p in photos if p],
    )


def _rows(payload: Any, field: str) -> list[Any]:
    rows = payload.get(field) if isinstance(payload, Mapping) else None
    return rows if isinstance(rows, list) else []


def parse_places(payload: Any) -> list[Place]:
    """Relevant places of a search response; malformed rows are skipped."""

    places: list[Place] = []
    for raw in _rows(payload, "places"):
        if not isinstance(raw, Mapping):
            logger.warning("places_row_skipped", reason="not_an_object")
            continue
        try:
            place = parse_place(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("places_row_skipped", place_id=raw.get("id"), error=str(exc))
            continue
        if place is not None and is_relevant(place.name, place.types):
            places.append(place)
    return places


def parse_prediction(raw: Mapping[str, Any]) -> Prediction | None:
    place_id = raw.get("place_id")
    description = raw.get("description")
    if not place_id or not description:
        return None
    formatting = raw.get("structured_formatting")
    if not isinstance(formatting, Mapping):
        formatting = {}
    return Prediction(
        place_id=str(place_id),
        description=str(description),
        main_text=formatting.get("main_text"),
        secondary_text=formatting.get("secondary_text"),
        types=[str(t) for t in raw.get("types") or []],
    )


def is_relevant_prediction(prediction: Prediction) -> bool:
    if not prediction.types:
        return True
    return bool(RELEVANT_PREDICTION_TYPES.intersection(prediction.types))


def parse_predictions(payload: Any) -> list[Prediction]:
    predictions: list[Prediction] = []
    for raw in _rows(payload, "predictions"):
        if not isinstance(raw, Mapping):
            continue
        try:
            prediction = parse_prediction(raw)
        except (TypeError, ValueError) as exc:
            logger.warning(
                "places_prediction_skipped", place_id=raw.get("place_id"), error=str(exc)
            )
            continue
        if prediction is not None and is_relevant_prediction(prediction):
            predictions.append(prediction)
    return predictions


__all__ = [
    "CATEGORY_PRIORITY",
    "DEFAULT_NEARBY_TYPES",
    "EXCLUDED_TYPES",
    "NATURE_AND_TOURIST_TYPES",
    "TYPE_CATEGORIES",
    "categorize",
    "category_from_name",
    "has_nature_signal",
    "is_relevant",
    "is_relevant_prediction",
    "map_types_to_category",
    "parse_place",
    "parse_places",
    "parse_prediction",
    "parse_predictions",
]
