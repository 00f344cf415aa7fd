from __future__ import annotations

import time
import uuid
from collections.abc import Callable

import sentry_sdk
import structlog
from fastapi import Request, Response

REQUEST_ID_HEADER = "X-Request-ID"

logger = structlog.get_logger(__name__)


def _client_ip(request: Request) -> str:
    return (request.client.host if request.client else None) or "-"


async def request_id_middleware(request: Request, call_next: Callable) -> Response:
    """Propagate or mint X-Request-ID and emit one ``http_request`` access log.

    request_id, path and method are bound to structlog contextvars for the
    duration of the request so service-level events carry them too.
    """

    rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=rid, path=request.url.path, method=request.method
    )
    sentry_sdk.set_tag("request_id", rid)

    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.error(
            "http_request",
            status=500,
            duration_ms=round((time.perf_counter() - start) * 1000, 3),
            client_ip=_client_ip(request),
            exc_info=True,
        )
        structlog.contextvars.clear_contextvars()
        raise

    logger.info(
        "http_request",
        status=response.status_code,
        duration_ms=round((time.perf_counter() - start) * 1000, 3),
        client_ip=_client_ip(request),
    )
    response.headers[REQUEST_ID_HEADER] = rid
    structlog.contextvars.clear_contextvars()
    return response
