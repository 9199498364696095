"""Drift audit — compare trusted coordinates against fresh provider results.

Offline tool, never on the request path. Entries are checked one at a time
with a fixed delay between provider calls to stay inside rate limits.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence

from loguru import logger

from location_cache.lib.geocoder.base import BaseLocationProvider
from location_cache.lib.geocoder.confidence import confidence_of
from location_cache.core.logging import audit_logger
from location_cache.lib.geocoder.spatial import distance_meters, is_same_location
from location_cache.schemas.audit import DriftEntry, DriftReport, DriftStatus, TrustedLocation

DEFAULT_THRESHOLD_METERS = 50.0
DEFAULT_DELAY_SECONDS = 0.1


def _loc(name: str, area: str, lat: float, lng: float, state: str) -> TrustedLocation:
    return TrustedLocation(name=name, area=area, state=state, latitude=lat, longitude=lng)


# Curated Delhi NCR landmarks with manually verified coordinates
DELHI_NCR_LOCATIONS: tuple[TrustedLocation, ...] = (
    # Delhi - Central & South
    _loc("Connaught Place", "New Delhi", 28.6315, 77.2167, "Delhi"),
    _loc("Karol Bagh", "New Delhi", 28.6517, 77.1909, "Delhi"),
    _loc("Lajpat Nagar", "New Delhi", 28.5679, 77.2431, "Delhi"),
    _loc("Rajouri Garden", "New Delhi", 28.6408, 77.1214, "Delhi"),
    _loc("Pitampura", "New Delhi", 28.7000, 77.1333, "Delhi"),
    _loc("Rohini", "New Delhi", 28.7433, 77.1028, "Delhi"),
    _loc("Dwarka", "New Delhi", 28.5921, 77.0465, "Delhi"),
    _loc("Vasant Kunj", "New Delhi", 28.5425, 77.1528, "Delhi"),
    _loc("Saket", "New Delhi", 28.5245, 77.2069, "Delhi"),
    _loc("Greater Kailash", "New Delhi", 28.5480, 77.2400, "Delhi"),
    # Noida
    _loc("Sector 18", "Noida", 28.5900, 77.3200, "Uttar Pradesh"),
    _loc("Sector 62", "Noida", 28.6000, 77.3300, "Uttar Pradesh"),
    # Gurugram
    _loc("Cyber City", "Gurugram", 28.4960, 77.0900, "Haryana"),
    _loc("Sector 29", "Gurugram", 28.4500, 77.0300, "Haryana"),
    # Malls and landmarks
    _loc("DLF Mall of India", "Noida", 28.5682, 77.3250, "Uttar Pradesh"),
    _loc("Select Citywalk", "Saket", 28.5244, 77.2169, "Delhi"),
    _loc("Ambience Mall", "Gurugram", 28.5011, 77.0800, "Haryana"),
)


async def check_location(
    provider: BaseLocationProvider,
    location: TrustedLocation,
    *,
    threshold_meters: float = DEFAULT_THRESHOLD_METERS,
) -> DriftEntry:
    """Resolve one trusted location and classify its drift.

    Provider exceptions are recorded as ``error`` entries rather than raised.
    """
    try:
        result = await provider.forward_lookup(location.query)
    except Exception as e:
        logger.exception(f"Drift check failed for {location.name}")
        return DriftEntry(location=location, status=DriftStatus.ERROR, message=f"Validation error: {e}")

    if result is None:
        return DriftEntry(location=location, status=DriftStatus.ERROR, message="Could not validate (no provider result)")

    distance = distance_meters(location.latitude, location.longitude, result.latitude, result.longitude)
    same = is_same_location(
        location.latitude, location.longitude, result.latitude, result.longitude, threshold_meters
    )
    if same:
        status, message = DriftStatus.ACCURATE, "Accurate"
    else:
        status = DriftStatus.WARNING
        message = f"{round(distance)}m difference from {provider.provider_name}"
        logger.warning(f"{location.name}: {message}")

    return DriftEntry(
        location=location,
        status=status,
        resolved_lat=result.latitude,
        resolved_lng=result.longitude,
        distance_meters=distance,
        confidence=confidence_of(result.location_type),
        message=message,
    )


async def audit_locations(
    provider: BaseLocationProvider,
    locations: Sequence[TrustedLocation] = DELHI_NCR_LOCATIONS,
    *,
    threshold_meters: float = DEFAULT_THRESHOLD_METERS,
    delay_seconds: float = DEFAULT_DELAY_SECONDS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> DriftReport:
    """Audit every trusted location sequentially.

    Args:
        provider: Provider used for fresh lookups (the cache is bypassed).
        locations: Trusted (name, coordinate) entries.
        threshold_meters: Largest distance still classified as accurate.
        delay_seconds: Pause between consecutive provider requests.
        sleep: Awaitable sleep, injectable for tests.

    Returns:
        DriftReport with warnings ordered by distance, largest first.
    """
    entries: list[DriftEntry] = []
    total = len(locations)
    logger.info(f"Starting drift audit of {total} locations against {provider.provider_name}")

    for index, location in enumerate(locations, start=1):
        logger.debug(f"[{index}/{total}] Validating: {location.query}")
        entries.append(await check_location(provider, location, threshold_meters=threshold_meters))
        if index < total and delay_seconds > 0:
            await sleep(delay_seconds)

    warnings = sorted(
        (e for e in entries if e.status is DriftStatus.WARNING),
        key=lambda e: e.distance_meters or 0.0,
        reverse=True,
    )
    errors = [e for e in entries if e.status is DriftStatus.ERROR]
    accurate = sum(1 for e in entries if e.status is DriftStatus.ACCURATE)

    audit_logger(
        "drift",
        provider=provider.provider_name,
        total=total,
        accurate=accurate,
        warnings=len(warnings),
        errors=len(errors),
        threshold_meters=threshold_meters,
    ).info(f"Drift audit complete: {accurate} accurate, {len(warnings)} warnings, {len(errors)} errors")
    return DriftReport(total=total, accurate=accurate, warnings=warnings, errors=errors, entries=entries)
