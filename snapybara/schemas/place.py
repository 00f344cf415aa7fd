"""Normalized shapes returned by the external place providers."""

from __future__ import annotations

from pydantic import BaseModel, Field

from snapybara.models.point import PointCategory, PointSource


class Place(BaseModel):
    place_id: str = Field(description="Provider place id")
    name: str
    latitude: float
    longitude: float
    category: PointCategory = PointCategory.other
    types: list[str] = Field(default_factory=list, description="Provider type vocabulary")
    formatted_address: str | None = None
    rating: float | None = None
    rating_count: int | None = None
    price_level: int | None = Field(default=None, ge=0, le=4)
    business_status: str | None = None
    website: str | None = None
    phone: str | None = None
    summary: str | None = None
    photo_references: list[str] = Field(default_factory=list)
    source: PointSource = PointSource.places_provider


class Prediction(BaseModel):
    place_id: str
    description: str
    main_text: str | None = None
    secondary_text: str | None = None
    types: list[str] = Field(default_factory=list)


class AutocompleteResponse(BaseModel):
    predictions: list[Prediction] = Field(default_factory=list)
    status: str = Field(description="OK, API_KEY_MISSING, ERROR or the provider status")


class PhotoUrlResponse(BaseModel):
    url: str = Field(description="Servable photo URL")
