"""SQL-backed Alias Index and Canonical Location Store.

Every operation opens its own session from the session factory and commits
before returning; nothing is cached in process memory between calls, so
several application instances can share one database.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from location_cache.lib.geocoder.confidence import Confidence
from location_cache.lib.geocoder.spatial import meters_to_degrees
from location_cache.lib.geocoder.store import (
    DEFAULT_LOCALE,
    AliasConflictError,
    AliasRecord,
    BaseAliasIndex,
    BaseLocationStore,
    CanonicalLocationRecord,
    MatchType,
    nearest_within,
)
from location_cache.models.canonical_location import CanonicalLocation
from location_cache.models.location_alias import LocationAlias


def _dialect_insert(session: AsyncSession) -> Callable[..., Any]:
    """Return the dialect-specific ``insert`` that supports ON CONFLICT."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    msg = f"Upsert is not supported for dialect {dialect!r}"
    raise NotImplementedError(msg)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read from backends that drop tzinfo."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def location_to_record(row: CanonicalLocation) -> CanonicalLocationRecord:
    return CanonicalLocationRecord(
        place_id=row.place_id,
        formatted_address=row.formatted_address,
        normalized_hash=row.normalized_hash,
        latitude=float(row.latitude),
        longitude=float(row.longitude),
        location_type=row.location_type,
        confidence=Confidence(row.confidence),
        source=row.source,
        verified_at=as_utc(row.verified_at),
        expires_at=as_utc(row.expires_at),
        viewport=row.viewport,
        needs_review=bool(row.needs_review),
        usage_count=row.usage_count,
        raw_response=row.raw_response,
    )


def _record_values(record: CanonicalLocationRecord) -> dict[str, Any]:
    return {
        "place_id": record.place_id,
        "formatted_address": record.formatted_address,
        "normalized_hash": record.normalized_hash,
        "latitude": record.latitude,
        "longitude": record.longitude,
        "viewport": record.viewport,
        "location_type": record.location_type,
        "confidence": record.confidence.value,
        "source": record.source,
        "raw_response": record.raw_response,
        "verified_at": record.verified_at,
        "expires_at": record.expires_at,
        "needs_review": record.needs_review,
        "usage_count": record.usage_count,
    }


class SqlLocationStore(BaseLocationStore):
    """Canonical Location Store on the ``geocode_locations`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, place_id: str) -> CanonicalLocationRecord | None:
        async with self._session_factory() as session:
            row = await session.get(CanonicalLocation, place_id)
            return location_to_record(row) if row else None

    async def upsert(self, record: CanonicalLocationRecord) -> CanonicalLocationRecord:
        """INSERT … ON CONFLICT (place_id) DO UPDATE, incrementing usage in SQL."""
        values = _record_values(record)
        async with self._session_factory() as session:
            insert = _dialect_insert(session)
            stmt = insert(CanonicalLocation).values(**values)
            set_: dict[str, Any] = {
                key: stmt.excluded[key] for key in values if key not in ("place_id", "usage_count")
            }
            set_["usage_count"] = CanonicalLocation.usage_count + 1
            set_["updated_at"] = func.now()
            stmt = stmt.on_conflict_do_update(index_elements=[CanonicalLocation.place_id], set_=set_)
            await session.execute(stmt)
            await session.commit()

            row = await session.get(CanonicalLocation, record.place_id, populate_existing=True)
            if row is None:
                msg = f"upserted location {record.place_id} could not be read back"
                raise RuntimeError(msg)
            return location_to_record(row)

    async def find_by_proximity(
        self,
        latitude: float,
        longitude: float,
        radius_meters: float,
        accept: Callable[[CanonicalLocationRecord], bool] | None = None,
    ) -> CanonicalLocationRecord | None:
        """Bounding-box prefilter in SQL, exact haversine ranking in Python."""
        lat_delta, lng_delta = meters_to_degrees(radius_meters, latitude)
        stmt = select(CanonicalLocation).where(
            CanonicalLocation.latitude.between(latitude - lat_delta, latitude + lat_delta),
            CanonicalLocation.longitude.between(longitude - lng_delta, longitude + lng_delta),
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            candidates = [location_to_record(row) for row in result.scalars().all()]
        return nearest_within(candidates, latitude, longitude, radius_meters, accept)

    async def increment_usage(self, place_id: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(CanonicalLocation)
                .where(CanonicalLocation.place_id == place_id)
                .values(usage_count=CanonicalLocation.usage_count + 1)
            )
            await session.commit()


class SqlAliasIndex(BaseAliasIndex):
    """Alias Index on the ``location_aliases`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find(self, normalized_query: str, locale: str = DEFAULT_LOCALE) -> str | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(LocationAlias.place_id).where(
                    LocationAlias.normalized_query == normalized_query,
                    LocationAlias.locale == locale,
                )
            )
            return result.scalar_one_or_none()

    async def upsert(self, alias: AliasRecord) -> AliasRecord:
        """INSERT … ON CONFLICT DO NOTHING, then read back to detect rebinding.

        Raises:
            AliasConflictError: If the key is bound to a different place.
        """
        async with self._session_factory() as session:
            insert = _dialect_insert(session)
            stmt = (
                insert(LocationAlias)
                .values(
                    normalized_query=alias.normalized_query,
                    original_query=alias.original_query,
                    place_id=alias.place_id,
                    match_type=alias.match_type.value,
                    usage_count=alias.usage_count,
                    locale=alias.locale,
                )
                .on_conflict_do_nothing(index_elements=[LocationAlias.normalized_query, LocationAlias.locale])
            )
            await session.execute(stmt)
            await session.commit()

            result = await session.execute(
                select(LocationAlias).where(
                    LocationAlias.normalized_query == alias.normalized_query,
                    LocationAlias.locale == alias.locale,
                )
            )
            row = result.scalar_one()

        if row.place_id != alias.place_id:
            raise AliasConflictError(alias.normalized_query, row.place_id, alias.place_id)
        return AliasRecord(
            normalized_query=row.normalized_query,
            original_query=row.original_query,
            place_id=row.place_id,
            match_type=MatchType(row.match_type),
            usage_count=row.usage_count,
            locale=row.locale,
        )

    async def increment_usage(
        self,
        place_id: str,
        normalized_query: str,
        locale: str = DEFAULT_LOCALE,
    ) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(LocationAlias)
                .where(
                    LocationAlias.place_id == place_id,
                    LocationAlias.normalized_query == normalized_query,
                    LocationAlias.locale == locale,
                )
                .values(usage_count=LocationAlias.usage_count + 1)
            )
            await session.commit()
