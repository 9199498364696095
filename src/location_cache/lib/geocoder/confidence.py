"""Confidence tiers and cache lifetimes derived from provider precision."""

from datetime import datetime, timedelta
from enum import StrEnum


class Confidence(StrEnum):
    """Coarse precision tier of a resolved location."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# Provider location_type → confidence tier
_LOCATION_TYPE_MAP: dict[str, Confidence] = {
    "ROOFTOP": Confidence.HIGH,
    "RANGE_INTERPOLATED": Confidence.MEDIUM,
    "GEOMETRIC_CENTER": Confidence.MEDIUM,
    "APPROXIMATE": Confidence.LOW,
}

# Imprecise results are re-verified sooner than precise ones
_TTL_DAYS: dict[Confidence, int] = {
    Confidence.HIGH: 90,
    Confidence.MEDIUM: 60,
    Confidence.LOW: 30,
}


def confidence_of(location_type: str | None) -> Confidence:
    """Map a provider precision category to a confidence tier.

    Unknown or missing categories are ``LOW``.
    """
    if not location_type:
        return Confidence.LOW
    return _LOCATION_TYPE_MAP.get(location_type.strip().upper(), Confidence.LOW)


def ttl_days(confidence: Confidence | str) -> int:
    """Cache lifetime in days for a confidence tier."""
    return _TTL_DAYS[Confidence(confidence)]


def expiration_for(verified_at: datetime, confidence: Confidence | str) -> datetime:
    """Return ``verified_at + ttl(confidence)``."""
    return verified_at + timedelta(days=ttl_days(confidence))
