"""Geocoding service — canonical cache orchestration for forward and reverse lookups.

Forward flow: normalize → alias lookup → (hit: freshness and integrity check,
usage bump) or (miss: provider call → canonical upsert → exact alias →
generated aliases). Reverse flow swaps the alias lookup for a proximity
search over cached canonical records.

Callers never see exceptions from this module: provider failures, store
failures and integrity defects all end in either ``None`` or a result served
straight from the provider.
"""

from collections.abc import Callable
from datetime import UTC, datetime

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from location_cache.core.config import Settings
from location_cache.lib.geocoder import get_configured_provider
from location_cache.lib.geocoder.base import BaseLocationProvider, BiasLocation, ProviderResult
from location_cache.lib.geocoder.cache import SqlAliasIndex, SqlLocationStore
from location_cache.lib.geocoder.confidence import Confidence, confidence_of, expiration_for
from location_cache.lib.geocoder.normalize import (
    coordinate_query,
    format_coordinate,
    generate_alias_variants,
    hash_query,
    normalize_query,
)
from location_cache.lib.geocoder.single_flight import SingleFlight
from location_cache.lib.geocoder.spatial import is_valid_coordinate
from location_cache.lib.geocoder.store import (
    DEFAULT_LOCALE,
    AliasConflictError,
    AliasRecord,
    BaseAliasIndex,
    BaseLocationStore,
    CanonicalLocationRecord,
    MatchType,
)
from location_cache.schemas.geocoding import CacheWriteOutcome, GeocodeOptions, LocationResult

DEFAULT_MIN_QUERY_LENGTH = 2
# Matches consumer GPS accuracy
DEFAULT_REVERSE_RADIUS_METERS = 50.0


def _utcnow() -> datetime:
    return datetime.now(UTC)


def to_location_result(record: CanonicalLocationRecord, *, cache_hit: bool) -> LocationResult:
    """Project a canonical record onto the caller-facing result."""
    return LocationResult(
        place_id=record.place_id,
        formatted_address=record.formatted_address,
        latitude=record.latitude,
        longitude=record.longitude,
        location_type=record.location_type,
        confidence=record.confidence,
        source=record.source,
        viewport=record.viewport,
        cache_hit=cache_hit,
    )


class GeocodingService:
    """Cache orchestrator over a provider, an alias index, and a location store.

    Holds no location data of its own; every call re-reads the stores. The
    only in-process state is the single-flight registry that coalesces
    concurrent misses for the same key.
    """

    def __init__(
        self,
        provider: BaseLocationProvider,
        alias_index: BaseAliasIndex,
        location_store: BaseLocationStore,
        *,
        min_query_length: int = DEFAULT_MIN_QUERY_LENGTH,
        reverse_radius_meters: float = DEFAULT_REVERSE_RADIUS_METERS,
        locale: str = DEFAULT_LOCALE,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._provider = provider
        self._aliases = alias_index
        self._locations = location_store
        self._min_query_length = min_query_length
        self._reverse_radius_meters = reverse_radius_meters
        self._locale = locale
        self._clock = clock
        self._single_flight = SingleFlight()

    @property
    def provider(self) -> BaseLocationProvider:
        return self._provider

    async def geocode(self, address: str, options: GeocodeOptions | None = None) -> LocationResult | None:
        """Resolve free text to a canonical location.

        Args:
            address: Query text as typed by the caller.
            options: Optional bias point and country filter for the provider.

        Returns:
            LocationResult (``cache_hit`` tells whether the provider was
            skipped), or None when the query is too short or nothing could
            be resolved.
        """
        normalized = normalize_query(address)
        if len(normalized) < self._min_query_length:
            return None

        cached = await self._lookup_alias(normalized)
        if cached is not None:
            await self._record_hit(cached.place_id, normalized)
            logger.debug(f"Cache hit for {normalized!r} → {cached.place_id}")
            return to_location_result(cached, cache_hit=True)

        opts = options or GeocodeOptions()
        key = (
            "forward",
            normalized,
            opts.bias_lat,
            opts.bias_lng,
            (opts.country_filter or "").lower(),
        )
        return await self._single_flight.do(key, lambda: self._fill_forward(address, normalized, opts))

    async def reverse_geocode(self, latitude: float, longitude: float) -> LocationResult | None:
        """Resolve coordinates to a canonical location.

        A fresh cached record within the proximity radius is served without
        calling the provider.

        Returns:
            LocationResult, or None for invalid coordinates or no result.
        """
        if not is_valid_coordinate(latitude, longitude):
            return None

        nearest = await self._lookup_nearby(latitude, longitude)
        if nearest is not None:
            await self._record_hit(nearest.place_id)
            logger.debug(f"Proximity hit for ({latitude}, {longitude}) → {nearest.place_id}")
            return to_location_result(nearest, cache_hit=True)

        key = ("reverse", format_coordinate(latitude), format_coordinate(longitude))
        return await self._single_flight.do(key, lambda: self._fill_reverse(latitude, longitude))

    async def save_result(
        self,
        record: CanonicalLocationRecord,
        normalized_query: str,
        original_query: str,
    ) -> CacheWriteOutcome:
        """Write a resolved record and its aliases, best effort.

        The canonical record is written first; without it no alias is
        attempted. Each alias is then bound on its own, so one conflicting
        or failing alias never stops the others.

        Returns:
            CacheWriteOutcome describing what was persisted.
        """
        try:
            await self._locations.upsert(record)
        except Exception as e:
            logger.exception(f"Failed to cache location {record.place_id}")
            return CacheWriteOutcome(error=str(e))

        outcome = CacheWriteOutcome(stored=True)
        candidates: list[AliasRecord] = [
            AliasRecord(
                normalized_query=normalized_query,
                original_query=original_query,
                place_id=record.place_id,
                match_type=MatchType.EXACT,
                usage_count=1,
                locale=self._locale,
            )
        ]
        candidates.extend(
            AliasRecord(
                normalized_query=variant,
                original_query=variant,
                place_id=record.place_id,
                match_type=MatchType.ALIAS,
                usage_count=0,
                locale=self._locale,
            )
            for variant in sorted(generate_alias_variants(record.formatted_address))
            if variant != normalized_query
        )

        for alias in candidates:
            try:
                await self._aliases.upsert(alias)
            except AliasConflictError as e:
                logger.info(f"Alias not rebound: {e}")
                outcome.aliases_skipped.append(alias.normalized_query)
            except Exception as e:
                logger.warning(f"Failed to bind alias {alias.normalized_query!r}: {e}")
                outcome.aliases_skipped.append(alias.normalized_query)
                if alias.match_type is MatchType.EXACT:
                    outcome.error = str(e)
            else:
                outcome.aliases_bound.append(alias.normalized_query)

        logger.info(
            f"Cached location: {record.formatted_address} ({record.place_id}), "
            f"{len(outcome.aliases_bound)} aliases bound, {len(outcome.aliases_skipped)} skipped"
        )
        return outcome

    def build_record(self, result: ProviderResult) -> CanonicalLocationRecord:
        """Derive confidence, expiry, and hash for a fresh provider result."""
        verified_at = self._clock()
        confidence = confidence_of(result.location_type)
        return CanonicalLocationRecord(
            place_id=result.place_id,
            formatted_address=result.formatted_address,
            normalized_hash=hash_query(result.formatted_address),
            latitude=format_coordinate(result.latitude),
            longitude=format_coordinate(result.longitude),
            location_type=result.location_type,
            confidence=confidence,
            source=self._provider.provider_name,
            verified_at=verified_at,
            expires_at=expiration_for(verified_at, confidence),
            viewport=result.viewport,
            needs_review=confidence is Confidence.LOW,
            usage_count=1,
            raw_response=result.raw_response,
        )

    async def _lookup_alias(self, normalized: str) -> CanonicalLocationRecord | None:
        """Return a servable cached record for the alias, or None (a miss)."""
        try:
            place_id = await self._aliases.find(normalized, self._locale)
            if place_id is None:
                return None
            record = await self._locations.get(place_id)
        except Exception:
            logger.exception(f"Cache read failed for {normalized!r}; treating as miss")
            return None

        if record is None:
            logger.warning(f"Alias {normalized!r} references missing place {place_id}; treating as miss")
            return None
        if not self._is_servable(record):
            return None
        return record

    async def _lookup_nearby(self, latitude: float, longitude: float) -> CanonicalLocationRecord | None:
        """Return the nearest servable record within the reverse radius, or None."""
        try:
            return await self._locations.find_by_proximity(
                latitude,
                longitude,
                self._reverse_radius_meters,
                accept=self._is_servable,
            )
        except Exception:
            logger.exception(f"Proximity lookup failed for ({latitude}, {longitude}); treating as miss")
            return None

    def _is_servable(self, record: CanonicalLocationRecord) -> bool:
        if not record.hash_matches():
            logger.warning(
                f"Integrity defect: stored hash for {record.place_id} does not match its address; treating as miss"
            )
            return False
        if record.is_expired(self._clock()):
            logger.info(f"Cache expired for place_id: {record.place_id}")
            return False
        return True

    async def _record_hit(self, place_id: str, normalized: str | None = None) -> None:
        try:
            if normalized is not None:
                await self._aliases.increment_usage(place_id, normalized, self._locale)
            await self._locations.increment_usage(place_id)
        except Exception as e:
            logger.warning(f"Failed to increment usage for {place_id}: {e}")

    async def _fill_forward(
        self,
        address: str,
        normalized: str,
        options: GeocodeOptions,
    ) -> LocationResult | None:
        # A flight that finished while our alias read was pending may have filled the key
        cached = await self._lookup_alias(normalized)
        if cached is not None:
            await self._record_hit(cached.place_id, normalized)
            return to_location_result(cached, cache_hit=True)

        bias = None
        if options.bias_lat is not None and options.bias_lng is not None:
            bias = BiasLocation(latitude=options.bias_lat, longitude=options.bias_lng)

        try:
            result = await self._provider.forward_lookup(address, bias=bias, country=options.country_filter)
        except Exception:
            logger.exception(f"Provider {self._provider.provider_name} raised on forward lookup")
            return None
        if result is None:
            logger.info(f"No provider result for {normalized!r}")
            return None

        record = self.build_record(result)
        await self.save_result(record, normalized, address)
        return to_location_result(record, cache_hit=False)

    async def _fill_reverse(self, latitude: float, longitude: float) -> LocationResult | None:
        nearest = await self._lookup_nearby(latitude, longitude)
        if nearest is not None:
            await self._record_hit(nearest.place_id)
            return to_location_result(nearest, cache_hit=True)

        try:
            result = await self._provider.reverse_lookup(latitude, longitude)
        except Exception:
            logger.exception(f"Provider {self._provider.provider_name} raised on reverse lookup")
            return None
        if result is None:
            logger.info(f"No provider result for ({latitude}, {longitude})")
            return None

        record = self.build_record(result)
        await self.save_result(record, coordinate_query(latitude, longitude), f"{latitude},{longitude}")
        return to_location_result(record, cache_hit=False)


def build_geocoding_service(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    provider: BaseLocationProvider | None = None,
) -> GeocodingService:
    """Wire a GeocodingService to the SQL stores and the configured provider.

    Raises:
        ValueError: If the configured provider is unknown or unconfigured.
    """
    return GeocodingService(
        provider or get_configured_provider(settings),
        SqlAliasIndex(session_factory),
        SqlLocationStore(session_factory),
        min_query_length=settings.geocoder_min_query_length,
        reverse_radius_meters=settings.geocoder_reverse_radius_meters,
        locale=settings.geocoder_alias_locale,
    )
