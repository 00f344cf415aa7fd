# snapybara/schemas/common.py
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    detail: str = Field(description="Error message")

    model_config = {"json_schema_extra": {"examples": [{"detail": "Not Found"}]}}


class OkResponse(BaseModel):
    ok: bool = Field(description="Always true on success")

    model_config = {"json_schema_extra": {"examples": [{"ok": True}]}}


class CacheStatsResponse(BaseModel):
    hits: int = Field(description="Lookups answered from the cache")
    misses: int = Field(description="Lookups that found nothing")
    hit_rate: float = Field(description="hits / (hits + misses), 0 when unused")
    errors: int = Field(default=0, description="Backend failures treated as misses")
    backend: str = Field(description="memory or redis")


class ReadinessResponse(BaseModel):
    ok: bool
    database: str = Field(description="ok when SELECT 1 succeeded")
    cache: str = Field(description="ok, or degraded when the cache backend is unreachable")
    cache_backend: str
