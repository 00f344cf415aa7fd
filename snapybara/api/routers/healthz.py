# snapybara/api/routers/healthz.py
from fastapi import APIRouter

from snapybara.schemas.common import OkResponse

router = APIRouter(prefix="/healthz", tags=["health"])


@router.get(
    "",
    response_model=OkResponse,
    summary="Liveness probe",
    description="Always 200; touches neither the database nor the cache.",
)
async def healthz():
    return {"ok": True}
