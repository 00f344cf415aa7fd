from __future__ import annotations

import os
from collections.abc import Callable
from typing import TypedDict

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from limits import parse as parse_limit
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter
from slowapi import Limiter


class RateLimitInfo(TypedDict, total=False):
    method: str
    ip: str
    limit: str


def client_ip(request: Request) -> str:
    # First hop of X-Forwarded-For wins over the socket peer
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "local"


# slowapi supplies the RateLimitExceeded type the app handler is registered for;
# the per-method windows below are enforced with `limits` directly
limiter = Limiter(key_func=client_ip)

_storage = MemoryStorage()
_rate = MovingWindowRateLimiter(_storage)

# Search endpoints fan out to paid providers, so they get a tighter read budget
_SEARCH_PREFIXES = ("/points/search", "/places/")
_EXEMPT_PATHS = ("/health", "/healthz", "/readyz")


def _enabled() -> bool:
    if os.getenv("RATE_LIMIT_ENABLED", "").lower() in {"1", "true"}:
        return True
    return not os.getenv("TESTING")


def limit_for(method: str, path: str) -> str | None:
    if path in _EXEMPT_PATHS:
        return None
    m = method.upper()
    if m in {"GET", "HEAD"}:
        return "30/minute" if path.startswith(_SEARCH_PREFIXES) else "120/minute"
    if m in {"POST", "PUT", "PATCH", "DELETE"}:
        return "30/minute"
    # OPTIONS (CORS preflight) is never limited
    return None


def reset_limits() -> None:
    _storage.reset()


async def rate_limit_middleware(request: Request, call_next: Callable) -> Response:
    if not _enabled():
        return await call_next(request)

    limit_str = limit_for(request.method, request.url.path)
    if not limit_str:
        return await call_next(request)

    ip = client_ip(request)
    scope = "search" if request.url.path.startswith(_SEARCH_PREFIXES) else "default"
    key = f"ip:{ip}|m:{request.method.upper()}|{scope}"
    if not _rate.hit(parse_limit(limit_str), key):
        info: RateLimitInfo = {"method": request.method.upper(), "ip": ip, "limit": limit_str}
        request.state.rate_limit_info = info
        return JSONResponse(
            status_code=429,
            content={
                "error": {"code": "rate_limited", "message": "Too Many Requests", "detail": info}
            },
        )

    response = await call_next(request)
    response.headers.setdefault("X-RateLimit-Limit", limit_str)
    return response
