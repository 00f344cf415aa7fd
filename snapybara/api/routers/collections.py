"""/collections routers."""

from fastapi import APIRouter, Depends, Query, Response

from snapybara.api.deps import AuthUser, get_collection_service, optional_user, require_user
from snapybara.dto import CollectionDetailDTO, CollectionDTO, FollowToggleDTO
from snapybara.schemas.collection import (
    CollectionCreateRequest,
    CollectionPointRequest,
    CollectionUpdateRequest,
)
from snapybara.schemas.common import ErrorResponse
from snapybara.services.collections import CollectionService

router = APIRouter(prefix="/collections", tags=["collections"])


@router.post("", response_model=CollectionDTO, status_code=201, summary="Create a collection")
async def create_collection(
    payload: CollectionCreateRequest,
    user: AuthUser = Depends(require_user),
    svc: CollectionService = Depends(get_collection_service),
):
    return await svc.create(payload, user.id)


@router.get(
    "",
    response_model=list[CollectionDTO],
    summary="Public collections, or the collections of one user",
)
async def list_collections(
    user_id: str | None = Query(None, max_length=64, description="Owner filter"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    viewer: AuthUser | None = Depends(optional_user),
    svc: CollectionService = Depends(get_collection_service),
):
    return await svc.list(viewer.id if viewer else None, owner_id=user_id, page=page, limit=limit)


@router.get(
    "/{collection_id}",
    response_model=CollectionDetailDTO,
    summary="Collection with its points",
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_collection(
    collection_id: int,
    viewer: AuthUser | None = Depends(optional_user),
    svc: CollectionService = Depends(get_collection_service),
):
    return await svc.get(collection_id, viewer.id if viewer else None)


@router.patch("/{collection_id}", response_model=CollectionDTO, summary="Update a collection")
async def update_collection(
    collection_id: int,
    payload: CollectionUpdateRequest,
    user: AuthUser = Depends(require_user),
    svc: CollectionService = Depends(get_collection_service),
):
    return await svc.update(collection_id, payload, user.id)


@router.delete("/{collection_id}", status_code=204, summary="Delete a collection")
async def delete_collection(
    collection_id: int,
    user: AuthUser = Depends(require_user),
    svc: CollectionService = Depends(get_collection_service),
):
    await svc.remove(collection_id, user.id)
    return Response(status_code=204)


@router.post(
    "/{collection_id}/points",
    response_model=CollectionDTO,
    summary="Append a point (idempotent)",
)
async def add_collection_point(
    collection_id: int,
    payload: CollectionPointRequest,
    user: AuthUser = Depends(require_user),
    svc: CollectionService = Depends(get_collection_service),
):
    return await svc.add_point(collection_id, payload.point_id, user.id)


@router.delete(
    "/{collection_id}/points/{point_id}",
    response_model=CollectionDTO,
    summary="Remove a point (idempotent)",
)
async def remove_collection_point(
    collection_id: int,
    point_id: int,
    user: AuthUser = Depends(require_user),
    svc: CollectionService = Depends(get_collection_service),
):
    return await svc.remove_point(collection_id, point_id, user.id)


@router.post(
    "/{collection_id}/follow",
    response_model=FollowToggleDTO,
    summary="Follow or unfollow a collection",
)
async def toggle_follow(
    collection_id: int,
    user: AuthUser = Depends(require_user),
    svc: CollectionService = Depends(get_collection_service),
):
    return await svc.toggle_follow(collection_id, user.id)
