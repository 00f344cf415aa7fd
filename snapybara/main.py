import os
from contextlib import asynccontextmanager

import sentry_sdk
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.starlette import StarletteIntegration
from slowapi.errors import RateLimitExceeded
from starlette.middleware.cors import CORSMiddleware

from snapybara.api import errors
from snapybara.api.routers import (
    cache,
    collections,
    healthz,
    me_favorites,
    notifications,
    places,
    points,
    readyz,
    reviews,
    users,
    webhooks,
)
from snapybara.container import ServiceContainer, build_container
from snapybara.core.config import get_settings
from snapybara.logging import setup_logging
from snapybara.middleware.rate_limit import rate_limit_middleware
from snapybara.middleware.request_id import request_id_middleware
from snapybara.middleware.security_headers import security_headers_middleware

logger = structlog.get_logger(__name__)


def _init_sentry(env: str) -> None:
    dsn = os.getenv("SENTRY_DSN")
    if not dsn:
        return
    # traces_sample_rate: clamp to [0.0, 0.2]
    try:
        rate_raw = float(os.getenv("SENTRY_TRACES_RATE", "0"))
    except ValueError:
        rate_raw = 0.0
    sentry_sdk.init(
        dsn=dsn,
        environment=env,
        release=os.getenv("RELEASE"),
        integrations=[StarletteIntegration()],
        traces_sample_rate=max(0.0, min(0.2, rate_raw)),
        send_default_pii=False,
    )


def create_app(container: ServiceContainer | None = None) -> FastAPI:
    """Build the application.

    An injected ``container`` is used as-is and left open on shutdown; otherwise
    one is built from settings at startup and closed on shutdown.
    """

    setup_logging()
    env = os.getenv("APP_ENV", "dev")
    _init_sentry(env)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if getattr(app.state, "container", None) is None:
            owned = build_container(get_settings())
            app.state.container = owned
        logger.info("app_startup", env=env)
        try:
            yield
        finally:
            if owned is not None:
                await owned.aclose()
                app.state.container = None
            logger.info("app_shutdown", env=env)

    app = FastAPI(title="SnapyBara API", lifespan=lifespan)
    app.state.container = container

    errors.install(app)
    app.middleware("http")(request_id_middleware)
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(rate_limit_middleware)

    # CORS from ALLOW_ORIGINS env (comma-separated)
    allow_origins = [o.strip() for o in os.getenv("ALLOW_ORIGINS", "").split(",") if o.strip()]
    if allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allow_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS", "HEAD"],
            allow_headers=["*"],
            expose_headers=["X-Request-ID"],
        )

    for module in (
        points,
        places,
        reviews,
        collections,
        me_favorites,
        notifications,
        cache,
        users,
        webhooks,
        healthz,
        readyz,
    ):
        app.include_router(module.router)

    @app.get("/health")
    def health():
        return {"status": "ok", "env": env}

    # Debug-only endpoint to raise an error (disabled in prod)
    if env != "prod":

        @app.get("/debug/error")
        def debug_error():
            raise RuntimeError("intentional error for Sentry debug")

    @app.exception_handler(RateLimitExceeded)
    async def _rate_limit_handler(request: Request, exc: RateLimitExceeded):
        info = getattr(request.state, "rate_limit_info", None)
        if not isinstance(info, dict):
            info = {
                "method": request.method,
                "ip": (request.client.host if request.client else None) or "-",
                "limit": str(getattr(exc, "detail", "-")),
            }
        body = {"code": "rate_limited", "message": "Too Many Requests", "detail": info}
        return JSONResponse(status_code=429, content={"error": body})

    return app


app = create_app()
