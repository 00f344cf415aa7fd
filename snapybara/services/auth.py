"""Bearer-token verification against the identity provider and the FastAPI auth gate."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx
import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from snapybara.core.exceptions import (
    AuthenticationError,
    InfrastructureError,
    PermissionDeniedError,
)
from snapybara.models.user import UserRole

logger = structlog.get_logger(__name__)

USER_ENDPOINT = "/auth/v1/user"


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str | None = None
    role: UserRole = UserRole.user
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.admin


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a token check; ``unavailable`` means the provider could not answer."""

    user: AuthUser | None = None
    error: str | None = None
    unavailable: bool = False

    @property
    def ok(self) -> bool:
        return self.user is not None


def _role(payload: dict[str, Any]) -> UserRole:
    raw = (payload.get("app_metadata") or {}).get("role")
    try:
        return UserRole(raw) if raw else UserRole.user
    except ValueError:
        return UserRole.user


class IdentityProviderClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        base_url: str | None,
        anon_key: str | None,
        timeout: float = 5.0,
    ) -> None:
        self._http = http
        self._base_url = (base_url or "").rstrip("/")
        self._anon_key = anon_key
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self._base_url)

    async def verify_token(self, token: str) -> AuthResult:
        if not token:
            return AuthResult(error="missing token")
        if not self.configured:
            logger.error("identity_provider_not_configured")
            return AuthResult(error="identity provider not configured", unavailable=True)

        url = f"{self._base_url}{USER_ENDPOINT}"
        headers = {"Authorization": f"Bearer {token}"}
        if self._anon_key:
            headers["apikey"] = self._anon_key
        try:
            response = await self._http.get(url, headers=headers, timeout=self._timeout)
        except httpx.HTTPError as exc:
            logger.warning("identity_request_failed", endpoint=url, error=repr(exc))
            return AuthResult(error="identity provider unreachable", unavailable=True)

        if response.status_code in (400, 401, 403, 404):
            return AuthResult(error="invalid token")
        if not response.is_success:
            logger.warning("identity_request_failed", endpoint=url, status=response.status_code)
            return AuthResult(error="identity provider error", unavailable=True)

        try:
            payload = response.json()
        except ValueError:
            logger.warning("identity_response_not_json", endpoint=url)
            return AuthResult(error="identity provider error", unavailable=True)
        if not isinstance(payload, dict) or not payload.get("id"):
            return AuthResult(error="invalid token")

        return AuthResult(
            user=AuthUser(
                id=str(payload["id"]),
                email=payload.get("email"),
                role=_role(payload),
                claims=payload,
            )
        )


class AuthMode(str, Enum):
    required = "required"
    optional = "optional"
    admin = "admin"


_bearer = HTTPBearer(auto_error=False)


class AuthGate:
    """FastAPI dependency resolving the caller from the ``Authorization`` header.

    ``optional`` yields None for anonymous callers; a token that is present
    but invalid is still rejected.
    """

    def __init__(self, mode: AuthMode | str = AuthMode.required) -> None:
        self.mode = AuthMode(mode)

    async def __call__(
        self,
        request: Request,
        credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    ) -> AuthUser | None:
        if credentials is None or not credentials.credentials:
            if self.mode is AuthMode.optional:
                return None
            raise AuthenticationError("missing bearer token")

        client: IdentityProviderClient = request.app.state.container.identity
        result = await client.verify_token(credentials.credentials)
        if result.unavailable:
            raise InfrastructureError("authentication service unavailable")
        if not result.ok:
            raise AuthenticationError(result.error or "invalid token")

        user = result.user
        if self.mode is AuthMode.admin and not user.is_admin:
            raise PermissionDeniedError("admin role required")
        structlog.contextvars.bind_contextvars(user_id=user.id)
        return user


require_user = AuthGate(AuthMode.required)
optional_user = AuthGate(AuthMode.optional)
require_admin = AuthGate(AuthMode.admin)


__all__ = [
    "AuthGate",
    "AuthMode",
    "AuthResult",
    "AuthUser",
    "IdentityProviderClient",
    "optional_user",
    "require_admin",
    "require_user",
]
