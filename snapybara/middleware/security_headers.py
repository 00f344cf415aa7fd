from __future__ import annotations

from collections.abc import Callable

from fastapi import Request, Response

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    # Clients send their own position for nearby searches
    "Permissions-Policy": "geolocation=(self)",
}


async def security_headers_middleware(request: Request, call_next: Callable) -> Response:
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response
