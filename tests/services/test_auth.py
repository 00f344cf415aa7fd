from types import SimpleNamespace

import httpx
import pytest
from fastapi.security import HTTPAuthorizationCredentials

from snapybara.core.exceptions import (
    AuthenticationError,
    InfrastructureError,
    PermissionDeniedError,
)
from snapybara.models import UserRole
from snapybara.services.auth import AuthGate, AuthMode, IdentityProviderClient


def _client(handler, base_url="https://identity.test"):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return IdentityProviderClient(http, base_url=base_url, anon_key="anon-key")


def _request(identity):
    container = SimpleNamespace(identity=identity)
    return SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(container=container)))


def _bearer(token):
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


@pytest.mark.asyncio
async def test_valid_token_resolves_the_user(providers):
    result = await _client(providers).verify_token("admin-token")

    assert result.ok
    assert result.user.id == "admin-1"
    assert result.user.role is UserRole.admin
    assert result.user.is_admin
    request = providers.requests[-1]
    assert request.url.path == "/auth/v1/user"
    assert request.headers["apikey"] == "anon-key"


@pytest.mark.asyncio
async def test_rejected_token_is_invalid_not_unavailable(providers):
    result = await _client(providers).verify_token("forged")

    assert not result.ok
    assert result.unavailable is False
    assert result.error == "invalid token"


@pytest.mark.asyncio
async def test_missing_token_never_reaches_the_provider(providers):
    result = await _client(providers).verify_token("")

    assert result.error == "missing token"
    assert providers.requests == []


@pytest.mark.parametrize(
    "response",
    [httpx.Response(503), httpx.Response(200, content=b"<html>")],
)
@pytest.mark.asyncio
async def test_provider_errors_mark_the_result_unavailable(response):
    result = await _client(lambda request: response).verify_token("user-token")

    assert result.unavailable is True
    assert not result.ok


@pytest.mark.asyncio
async def test_unreachable_provider_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    result = await _client(handler).verify_token("user-token")

    assert result.unavailable is True


@pytest.mark.asyncio
async def test_unconfigured_provider_is_unavailable(providers):
    result = await _client(providers, base_url=None).verify_token("user-token")

    assert result.unavailable is True
    assert providers.requests == []


@pytest.mark.asyncio
async def test_optional_gate_lets_anonymous_callers_through(providers):
    gate = AuthGate(AuthMode.optional)

    assert await gate(_request(_client(providers)), None) is None


@pytest.mark.asyncio
async def test_optional_gate_still_rejects_a_bad_token(providers):
    gate = AuthGate(AuthMode.optional)

    with pytest.raises(AuthenticationError):
        await gate(_request(_client(providers)), _bearer("forged"))


@pytest.mark.asyncio
async def test_required_gate(providers):
    gate = AuthGate(AuthMode.required)
    request = _request(_client(providers))

    with pytest.raises(AuthenticationError):
        await gate(request, None)
    user = await gate(request, _bearer("user-token"))
    assert user.id == "user-1"


@pytest.mark.asyncio
async def test_admin_gate_requires_the_admin_role(providers):
    gate = AuthGate(AuthMode.admin)
    request = _request(_client(providers))

    with pytest.raises(PermissionDeniedError):
        await gate(request, _bearer("user-token"))
    assert (await gate(request, _bearer("admin-token"))).is_admin


@pytest.mark.asyncio
async def test_gate_reports_provider_outage_as_infrastructure_error():
    gate = AuthGate()
    request = _request(_client(lambda r: httpx.Response(502)))

    with pytest.raises(InfrastructureError):
        await gate(request, _bearer("user-token"))
