"""/reviews routers."""

from fastapi import APIRouter, Depends, Query, Response

from snapybara.api.deps import AuthUser, get_review_service, require_user
from snapybara.core.exceptions import ValidationError
from snapybara.dto import HelpfulToggleDTO, PointStatisticsDTO, ReviewDTO
from snapybara.schemas.common import ErrorResponse
from snapybara.schemas.review import ReviewCreateRequest, ReviewUpdateRequest
from snapybara.services.reviews import ReviewService

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.post(
    "",
    response_model=ReviewDTO,
    status_code=201,
    summary="Review a point (one review per user and point)",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_review(
    payload: ReviewCreateRequest,
    user: AuthUser = Depends(require_user),
    svc: ReviewService = Depends(get_review_service),
):
    return await svc.create(payload, user.id)


@router.get("", response_model=list[ReviewDTO], summary="Reviews by point or by user")
async def list_reviews(
    point_id: int | None = Query(None, ge=1),
    user_id: str | None = Query(None, max_length=64),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    svc: ReviewService = Depends(get_review_service),
):
    if point_id is not None:
        return await svc.list_for_point(point_id, page=page, limit=limit)
    if user_id:
        return await svc.list_for_user(user_id, page=page, limit=limit)
    raise ValidationError("point_id or user_id is required")


@router.get(
    "/point/{point_id}/statistics",
    response_model=PointStatisticsDTO,
    summary="Rating statistics of a point",
)
async def point_statistics(point_id: int, svc: ReviewService = Depends(get_review_service)):
    return await svc.point_statistics(point_id)


@router.get("/{review_id}", response_model=ReviewDTO, summary="Review detail")
async def get_review(review_id: int, svc: ReviewService = Depends(get_review_service)):
    return await svc.get(review_id)


@router.patch("/{review_id}", response_model=ReviewDTO, summary="Update a review (author only)")
async def update_review(
    review_id: int,
    payload: ReviewUpdateRequest,
    user: AuthUser = Depends(require_user),
    svc: ReviewService = Depends(get_review_service),
):
    return await svc.update(review_id, payload, user.id, is_admin=user.is_admin)


@router.delete("/{review_id}", status_code=204, summary="Delete a review (author only)")
async def delete_review(
    review_id: int,
    user: AuthUser = Depends(require_user),
    svc: ReviewService = Depends(get_review_service),
):
    await svc.remove(review_id, user.id, is_admin=user.is_admin)
    return Response(status_code=204)


@router.post(
    "/{review_id}/helpful",
    response_model=HelpfulToggleDTO,
    summary="Toggle the caller's helpful vote",
)
async def toggle_helpful(
    review_id: int,
    user: AuthUser = Depends(require_user),
    svc: ReviewService = Depends(get_review_service),
):
    return await svc.toggle_helpful(review_id, user.id)
