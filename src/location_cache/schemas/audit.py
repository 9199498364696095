"""Pydantic v2 schemas for drift and integrity audit reports."""

from enum import StrEnum

from pydantic import BaseModel, Field

from location_cache.lib.geocoder.confidence import Confidence


class DriftStatus(StrEnum):
    """Classification of one trusted location against the provider."""

    ACCURATE = "accurate"
    WARNING = "warning"
    ERROR = "error"


class TrustedLocation(BaseModel):
    """A named place with coordinates previously accepted as correct."""

    name: str
    area: str = ""
    state: str = ""
    country: str = "India"
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    priority: int = 1

    @property
    def query(self) -> str:
        """Lookup text sent to the provider."""
        return ", ".join(part for part in (self.name, self.area, self.state) if part)


class DriftEntry(BaseModel):
    """Audit outcome for one trusted location."""

    location: TrustedLocation
    status: DriftStatus
    resolved_lat: float | None = None
    resolved_lng: float | None = None
    distance_meters: float | None = None
    confidence: Confidence | None = None
    message: str


class DriftReport(BaseModel):
    """Summary of a drift audit run."""

    total: int
    accurate: int
    warnings: list[DriftEntry]
    errors: list[DriftEntry]
    entries: list[DriftEntry]

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def percent(self, count: int) -> int:
        """Share of ``total`` as a rounded whole percentage."""
        if self.total == 0:
            return 0
        return round(count * 100 / self.total)

    @property
    def is_clean(self) -> bool:
        return not self.warnings and not self.errors


class HashMismatch(BaseModel):
    """A canonical record whose stored hash does not match its address."""

    place_id: str
    formatted_address: str
    stored_hash: str
    expected_hash: str


class DanglingAlias(BaseModel):
    """An alias whose place_id has no canonical record."""

    normalized_query: str
    locale: str
    place_id: str


class IntegrityReport(BaseModel):
    """Data integrity defects found by a scan."""

    locations_checked: int
    aliases_checked: int
    hash_mismatches: list[HashMismatch] = Field(default_factory=list)
    dangling_aliases: list[DanglingAlias] = Field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.hash_mismatches and not self.dangling_aliases
