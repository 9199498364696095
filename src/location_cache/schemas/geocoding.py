"""Pydantic v2 schemas for geocoding results."""

from typing import Any

from pydantic import BaseModel, Field

from location_cache.lib.geocoder.confidence import Confidence


class GeocodeOptions(BaseModel):
    """Optional ranking hints for a forward lookup."""

    bias_lat: float | None = Field(default=None, ge=-90, le=90)
    bias_lng: float | None = Field(default=None, ge=-180, le=180)
    country_filter: str | None = Field(default=None, min_length=2, max_length=2, description="ISO 3166-1 alpha-2")


class LocationResult(BaseModel):
    """A resolved location as returned to callers."""

    place_id: str
    formatted_address: str
    latitude: float
    longitude: float
    location_type: str | None = None
    confidence: Confidence
    source: str
    viewport: dict[str, Any] | None = None
    cache_hit: bool


class CacheWriteOutcome(BaseModel):
    """Result of a best-effort cache fill.

    Kept apart from LocationResult: a failed fill never changes what the
    caller receives.
    """

    stored: bool = False
    aliases_bound: list[str] = Field(default_factory=list)
    aliases_skipped: list[str] = Field(default_factory=list)
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.stored and self.error is None
