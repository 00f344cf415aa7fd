"""DTOs for hybrid search result pages."""

from __future__ import annotations

from pydantic import BaseModel, Field

from snapybara.dto.point import PointSummaryDTO


class SearchSourcesDTO(BaseModel):
    local: int = Field(default=0, description="Local results in the full merged set")
    external: int = Field(default=0, description="External results in the full merged set")


class HybridSearchPageDTO(BaseModel):
    data: list[PointSummaryDTO] = Field(description="Results of the requested page")
    total: int = Field(default=0, description="Size of the merged result set")
    page: int = Field(default=1, description="1-based page number")
    limit: int = Field(default=20, description="Page size")
    sources: SearchSourcesDTO = Field(default_factory=SearchSourcesDTO)
    cached: bool = Field(default=False, description="Served from the search cache")
