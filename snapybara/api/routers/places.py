"""/places routers: thin, best-effort access to the external places provider."""

from fastapi import APIRouter, Depends, Query

from snapybara.api.deps import AuthUser, get_places_client, require_user
from snapybara.core.exceptions import NotFoundError
from snapybara.models.point import PointCategory
from snapybara.schemas.common import ErrorResponse
from snapybara.schemas.place import AutocompleteResponse, PhotoUrlResponse, Place
from snapybara.services.places import PlacesClient

router = APIRouter(prefix="/places", tags=["places"])


@router.get(
    "/nearby",
    response_model=list[Place],
    summary="Provider places near a coordinate",
    description="Always 200; an unavailable provider yields an empty list.",
)
async def places_nearby(
    lat: float = Query(..., ge=-90.0, le=90.0),
    lng: float = Query(..., ge=-180.0, le=180.0),
    radius: float = Query(5000.0, gt=0, le=50000.0, description="Radius in metres"),
    category: PointCategory | None = Query(None),
    places: PlacesClient = Depends(get_places_client),
):
    return await places.nearby_search(lat, lng, radius, category)


@router.get("/search", response_model=list[Place], summary="Provider text search")
async def places_search(
    q: str = Query(..., min_length=1, max_length=200, description="Search text"),
    lat: float | None = Query(None, ge=-90.0, le=90.0),
    lng: float | None = Query(None, ge=-180.0, le=180.0),
    radius: float | None = Query(None, gt=0, le=50000.0),
    places: PlacesClient = Depends(get_places_client),
):
    return await places.text_search(q, lat, lng, radius)


@router.get(
    "/autocomplete",
    response_model=AutocompleteResponse,
    summary="Place name suggestions",
    description="status is API_KEY_MISSING without credentials and ERROR on provider failure.",
)
async def places_autocomplete(
    input: str = Query("", max_length=200, description="Partial text"),
    lat: float | None = Query(None, ge=-90.0, le=90.0),
    lng: float | None = Query(None, ge=-180.0, le=180.0),
    radius: float | None = Query(None, gt=0, le=50000.0),
    places: PlacesClient = Depends(get_places_client),
):
    return await places.autocomplete(input, lat, lng, radius)


@router.get(
    "/photo",
    response_model=PhotoUrlResponse,
    summary="Resolve a provider photo reference to a URL",
    responses={404: {"model": ErrorResponse}},
)
async def places_photo(
    reference: str = Query(..., min_length=1, max_length=500),
    max_width: int = Query(800, ge=1, le=4800),
    _: AuthUser = Depends(require_user),
    places: PlacesClient = Depends(get_places_client),
):
    url = await places.photo_url(reference, max_width)
    if not url:
        raise NotFoundError("photo not available")
    return PhotoUrlResponse(url=url)


@router.get(
    "/{place_id}",
    response_model=Place,
    summary="Provider place detail",
    responses={404: {"model": ErrorResponse}},
)
async def place_detail(place_id: str, places: PlacesClient = Depends(get_places_client)):
    place = await places.get_details(place_id)
    if place is None:
        raise NotFoundError("place not found")
    return place
