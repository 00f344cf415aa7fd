from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from snapybara.api.deps import AuthUser, get_collection_service, require_user
from snapybara.dto import PointDTO
from snapybara.schemas.collection import FavoriteCreateRequest
from snapybara.services.collections import CollectionService

router = APIRouter(prefix="/me", tags=["me"])


@router.post("/favorites", status_code=204, summary="Add a favorite (idempotent)")
async def add_favorite(
    payload: FavoriteCreateRequest,
    user: AuthUser = Depends(require_user),
    svc: CollectionService = Depends(get_collection_service),
):
    await svc.add_favorite(user.id, payload.point_id)
    return Response(status_code=204)


@router.get("/favorites", response_model=list[PointDTO], summary="Favorite points")
async def list_favorites(
    user: AuthUser = Depends(require_user),
    svc: CollectionService = Depends(get_collection_service),
):
    return await svc.list_favorites(user.id)


@router.delete("/favorites/{point_id}", status_code=204, summary="Remove a favorite (idempotent)")
async def delete_favorite(
    point_id: int,
    user: AuthUser = Depends(require_user),
    svc: CollectionService = Depends(get_collection_service),
):
    await svc.remove_favorite(user.id, point_id)
    return Response(status_code=204)
