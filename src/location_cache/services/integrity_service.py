"""Integrity scan over the canonical cache tables.

Reports dangling aliases and hash mismatches for investigation. Never
modifies data.
"""

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from location_cache.core.logging import audit_logger
from location_cache.lib.geocoder.normalize import hash_query
from location_cache.models.canonical_location import CanonicalLocation
from location_cache.models.location_alias import LocationAlias
from location_cache.schemas.audit import DanglingAlias, HashMismatch, IntegrityReport


async def check_integrity(session: AsyncSession) -> IntegrityReport:
    """Scan both tables for integrity defects.

    Args:
        session: Database session.

    Returns:
        IntegrityReport listing every defect found.
    """
    locations = (await session.execute(select(CanonicalLocation))).scalars().all()
    mismatches = [
        HashMismatch(
            place_id=row.place_id,
            formatted_address=row.formatted_address,
            stored_hash=row.normalized_hash,
            expected_hash=hash_query(row.formatted_address),
        )
        for row in locations
        if hash_query(row.formatted_address) != row.normalized_hash
    ]

    alias_count = (await session.execute(select(func.count()).select_from(LocationAlias))).scalar_one()
    dangling_rows = (
        await session.execute(
            select(LocationAlias.normalized_query, LocationAlias.locale, LocationAlias.place_id)
            .outerjoin(CanonicalLocation, CanonicalLocation.place_id == LocationAlias.place_id)
            .where(CanonicalLocation.place_id.is_(None))
            .order_by(LocationAlias.normalized_query)
        )
    ).all()
    dangling = [
        DanglingAlias(normalized_query=row.normalized_query, locale=row.locale, place_id=row.place_id)
        for row in dangling_rows
    ]

    for mismatch in mismatches:
        logger.warning(f"Hash mismatch for {mismatch.place_id}: stored {mismatch.stored_hash}")
    for alias in dangling:
        logger.warning(f"Dangling alias {alias.normalized_query!r} → missing place {alias.place_id}")

    audit_logger(
        "integrity",
        locations_checked=len(locations),
        aliases_checked=alias_count,
        hash_mismatches=len(mismatches),
        dangling_aliases=len(dangling),
    ).info(f"Integrity scan complete: {len(mismatches)} hash mismatches, {len(dangling)} dangling aliases")

    return IntegrityReport(
        locations_checked=len(locations),
        aliases_checked=alias_count,
        hash_mismatches=mismatches,
        dangling_aliases=dangling,
    )
