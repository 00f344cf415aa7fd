"""Identity-provider database webhooks keeping the local users table in sync."""

import hmac

from fastapi import APIRouter, Depends, Header

from snapybara.api.deps import get_container, get_user_service
from snapybara.container import ServiceContainer
from snapybara.core.exceptions import AuthenticationError, InfrastructureError
from snapybara.schemas.user import IdentityWebhookEvent
from snapybara.services.users import UserService

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

SECRET_HEADER = "X-Webhook-Secret"


@router.post("/identity", summary="Apply an identity-provider user event")
async def identity_webhook(
    event: IdentityWebhookEvent,
    secret: str | None = Header(None, alias=SECRET_HEADER),
    container: ServiceContainer = Depends(get_container),
    svc: UserService = Depends(get_user_service),
):
    expected = container.settings.webhook_secret
    if not expected:
        raise InfrastructureError("webhook secret is not configured")
    if not secret or not hmac.compare_digest(secret.encode(), expected.encode()):
        raise AuthenticationError("invalid webhook secret")
    action = await svc.apply_event(event)
    return {"ok": True, "action": action}
