"""/points routers: hybrid search, authoring, moderation and provider imports."""

from fastapi import APIRouter, Depends, Query, Request, Response

from snapybara.api.deps import (
    AuthUser,
    get_categories_from_query,
    get_point_service,
    get_review_service,
    get_search_engine,
    optional_user,
    require_admin,
    require_user,
)
from snapybara.dto import (
    HybridSearchPageDTO,
    ImportSummaryDTO,
    PointDTO,
    PointSummaryDTO,
    ReviewDTO,
)
from snapybara.schemas.common import ErrorResponse
from snapybara.schemas.point import (
    AreaImportRequest,
    PlaceImportRequest,
    PointCreateRequest,
    PointStatusUpdateRequest,
    PointUpdateRequest,
)
from snapybara.services.hybrid_search import HybridSearchEngine
from snapybara.services.points import PointService
from snapybara.services.reviews import ReviewService

router = APIRouter(prefix="/points", tags=["points"])

_SEARCH_DESC = (
    "Local points merged with external provider results around (lat, lng).\n"
    "- radius is in metres, clamped to [1, 50000] and bucketed to 10 m\n"
    "- results are sorted by distance, then rating\n"
    "- provider failures never fail the request; only local results are returned then\n"
)


def _viewer_id(user: AuthUser | None) -> str | None:
    return user.id if user else None


@router.get(
    "/search",
    response_model=HybridSearchPageDTO,
    summary="Hybrid point search (local + external providers)",
    description=_SEARCH_DESC,
    responses={400: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def search_points(
    request: Request,
    lat: float = Query(..., description="Latitude (-90..90)"),
    lng: float = Query(..., description="Longitude (-180..180)"),
    radius: float = Query(5000.0, gt=0, description="Search radius in metres"),
    categories: str | None = Query(None, description="Comma-separated categories"),
    keyword: str | None = Query(None, max_length=100, description="Free-text filter"),
    page: int = Query(1, ge=1, description="1-based page number"),
    limit: int = Query(20, description="Page size (1..SEARCH_MAX_LIMIT, 50 by default)"),
    refresh: bool = Query(False, description="Bypass the search cache"),
    user: AuthUser | None = Depends(optional_user),
    engine: HybridSearchEngine = Depends(get_search_engine),
):
    return await engine.search(
        lat,
        lng,
        radius,
        get_categories_from_query(request, categories),
        page,
        limit,
        keyword=keyword,
        viewer_id=_viewer_id(user),
        bypass_cache=refresh,
    )


@router.get(
    "/nearby",
    response_model=list[PointSummaryDTO],
    summary="Local points near a coordinate",
)
async def nearby_points(
    request: Request,
    lat: float = Query(..., ge=-90.0, le=90.0),
    lng: float = Query(..., ge=-180.0, le=180.0),
    radius: float = Query(5000.0, gt=0, description="Radius in metres"),
    categories: str | None = Query(None, description="Comma-separated categories"),
    limit: int = Query(50, ge=1, le=100),
    user: AuthUser | None = Depends(optional_user),
    svc: PointService = Depends(get_point_service),
):
    return await svc.nearby(
        lat,
        lng,
        radius,
        get_categories_from_query(request, categories),
        viewer_id=_viewer_id(user),
        limit=limit,
    )


@router.get("/mine", response_model=list[PointDTO], summary="Points created by the caller")
async def my_points(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: AuthUser = Depends(require_user),
    svc: PointService = Depends(get_point_service),
):
    return await svc.list_mine(user.id, page=page, limit=limit)


@router.post("", response_model=PointDTO, status_code=201, summary="Create a point (pending)")
async def create_point(
    payload: PointCreateRequest,
    user: AuthUser = Depends(require_user),
    svc: PointService = Depends(get_point_service),
):
    return await svc.create(payload, user.id)


@router.post(
    "/import",
    response_model=PointDTO,
    status_code=201,
    summary="Import one provider place as an approved point",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def import_place(
    payload: PlaceImportRequest,
    _: AuthUser = Depends(require_admin),
    svc: PointService = Depends(get_point_service),
):
    return await svc.import_place(payload.place_id)


@router.post(
    "/import-area",
    response_model=ImportSummaryDTO,
    summary="Import provider places around a coordinate",
)
async def import_area(
    payload: AreaImportRequest,
    _: AuthUser = Depends(require_admin),
    svc: PointService = Depends(get_point_service),
):
    return await svc.import_area(
        payload.latitude,
        payload.longitude,
        radius_km=payload.radius_km,
        max_places=payload.max_places,
    )


@router.get(
    "/{point_id}",
    response_model=PointDTO,
    summary="Point detail",
    responses={404: {"model": ErrorResponse}},
)
async def get_point(
    point_id: int,
    user: AuthUser | None = Depends(optional_user),
    svc: PointService = Depends(get_point_service),
):
    return await svc.get(point_id, _viewer_id(user), is_admin=bool(user and user.is_admin))


@router.patch(
    "/{point_id}",
    response_model=PointDTO,
    summary="Update a point (author only)",
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_point(
    point_id: int,
    payload: PointUpdateRequest,
    user: AuthUser = Depends(require_user),
    svc: PointService = Depends(get_point_service),
):
    return await svc.update(point_id, payload, user.id, is_admin=user.is_admin)


@router.delete("/{point_id}", status_code=204, summary="Soft-delete a point (author only)")
async def delete_point(
    point_id: int,
    user: AuthUser = Depends(require_user),
    svc: PointService = Depends(get_point_service),
):
    await svc.remove(point_id, user.id, is_admin=user.is_admin)
    return Response(status_code=204)


@router.patch("/{point_id}/status", response_model=PointDTO, summary="Moderate a point")
async def moderate_point(
    point_id: int,
    payload: PointStatusUpdateRequest,
    _: AuthUser = Depends(require_admin),
    svc: PointService = Depends(get_point_service),
):
    return await svc.set_status(point_id, payload.status, reason=payload.reason)


@router.get("/{point_id}/reviews", response_model=list[ReviewDTO], summary="Reviews of a point")
async def point_reviews(
    point_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    svc: ReviewService = Depends(get_review_service),
):
    return await svc.list_for_point(point_id, page=page, limit=limit)
