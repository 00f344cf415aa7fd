"""/notifications routers; every route acts on the caller's own notifications."""

from fastapi import APIRouter, Depends, Query, Response

from snapybara.api.deps import AuthUser, get_notification_service, require_admin, require_user
from snapybara.dto import CountDTO, NotificationDTO, NotificationPageDTO
from snapybara.models.notification import NotificationType
from snapybara.schemas.common import ErrorResponse
from snapybara.schemas.notification import NotificationCreateRequest
from snapybara.services.notifications import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationPageDTO, summary="The caller's notifications")
async def list_notifications(
    is_read: bool | None = Query(None),
    type: NotificationType | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: AuthUser = Depends(require_user),
    svc: NotificationService = Depends(get_notification_service),
):
    return await svc.list(user.id, is_read=is_read, type_=type, page=page, limit=limit)


@router.post(
    "",
    response_model=NotificationDTO,
    status_code=201,
    summary="Send a notification to a user (admin)",
)
async def create_notification(
    payload: NotificationCreateRequest,
    _: AuthUser = Depends(require_admin),
    svc: NotificationService = Depends(get_notification_service),
):
    return await svc.create(payload)


@router.post("/read-all", response_model=CountDTO, summary="Mark every notification read")
async def mark_all_read(
    user: AuthUser = Depends(require_user),
    svc: NotificationService = Depends(get_notification_service),
):
    return await svc.mark_all_read(user.id)


@router.post(
    "/clear-old",
    response_model=CountDTO,
    summary="Delete read notifications older than days_to_keep days",
)
async def clear_old(
    days_to_keep: int = Query(30, ge=0, le=365),
    user: AuthUser = Depends(require_user),
    svc: NotificationService = Depends(get_notification_service),
):
    return await svc.clear_old(user.id, days_to_keep)


@router.patch(
    "/{notification_id}/read",
    response_model=NotificationDTO,
    summary="Mark one notification read",
    responses={404: {"model": ErrorResponse}},
)
async def mark_read(
    notification_id: int,
    user: AuthUser = Depends(require_user),
    svc: NotificationService = Depends(get_notification_service),
):
    return await svc.mark_read(notification_id, user.id)


@router.delete("/{notification_id}", status_code=204, summary="Delete one notification")
async def delete_notification(
    notification_id: int,
    user: AuthUser = Depends(require_user),
    svc: NotificationService = Depends(get_notification_service),
):
    await svc.delete(notification_id, user.id)
    return Response(status_code=204)
