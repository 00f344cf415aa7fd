import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from snapybara.api.deps import get_container
from snapybara.container import ServiceContainer
from snapybara.schemas.common import ReadinessResponse

router = APIRouter(prefix="/readyz", tags=["health"])

logger = structlog.get_logger(__name__)


def _unavailable(code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": {"code": code, "message": message}},
    )


@router.get(
    "",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    description="SELECT 1 against the database and a cache ping; 503 when the database is down.",
)
async def readyz(container: ServiceContainer = Depends(get_container)):
    svc = container.health()
    if svc is None:
        return _unavailable("database_not_configured", "No database session factory")
    try:
        return await svc.ok()
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("readiness_failed", error=repr(exc))
        return _unavailable("database_unavailable", "Database is not reachable")
