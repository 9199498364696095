"""Alias Index and Canonical Location Store contracts, plus in-memory backends.

The in-memory backends implement the same contracts as the SQL backends in
``location_cache.lib.geocoder.cache`` and are used for tests and for
embedding the cache without a database.
"""

import asyncio
import dataclasses
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from location_cache.lib.geocoder.confidence import Confidence
from location_cache.lib.geocoder.normalize import hash_query
from location_cache.lib.geocoder.spatial import distance_meters

DEFAULT_LOCALE = "en"


class MatchType(StrEnum):
    """How an alias came to be bound to its place."""

    EXACT = "exact"
    ALIAS = "alias"


@dataclass
class CanonicalLocationRecord:
    """The authoritative record for one real-world place."""

    place_id: str
    formatted_address: str
    normalized_hash: str
    latitude: float
    longitude: float
    location_type: str | None
    confidence: Confidence
    source: str
    verified_at: datetime
    expires_at: datetime
    viewport: dict[str, Any] | None = None
    needs_review: bool = False
    usage_count: int = 0
    raw_response: dict[str, Any] | None = field(default=None, repr=False)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def hash_matches(self) -> bool:
        """Whether the stored hash still derives from the stored address."""
        return hash_query(self.formatted_address) == self.normalized_hash


@dataclass
class AliasRecord:
    """A normalized query bound to a canonical place."""

    normalized_query: str
    original_query: str
    place_id: str
    match_type: MatchType = MatchType.EXACT
    usage_count: int = 0
    locale: str = DEFAULT_LOCALE


class AliasConflictError(Exception):
    """Raised when a normalized query is already bound to a different place."""

    def __init__(self, normalized_query: str, existing_place_id: str, requested_place_id: str) -> None:
        self.normalized_query = normalized_query
        self.existing_place_id = existing_place_id
        self.requested_place_id = requested_place_id
        super().__init__(
            f"alias {normalized_query!r} is bound to {existing_place_id}, refusing to rebind to {requested_place_id}"
        )


def nearest_within(
    records: Iterable[CanonicalLocationRecord],
    latitude: float,
    longitude: float,
    radius_meters: float,
    accept: Callable[[CanonicalLocationRecord], bool] | None = None,
) -> CanonicalLocationRecord | None:
    """Pick the nearest record within the radius.

    Records rejected by ``accept`` are skipped before ranking. Ties on
    distance go to the most recently verified record.
    """
    best: CanonicalLocationRecord | None = None
    best_key: tuple[float, float] | None = None
    for record in records:
        distance = distance_meters(latitude, longitude, record.latitude, record.longitude)
        if distance > radius_meters:
            continue
        if accept is not None and not accept(record):
            continue
        key = (distance, -record.verified_at.timestamp())
        if best_key is None or key < best_key:
            best, best_key = record, key
    return best


class BaseAliasIndex(ABC):
    """Mapping from normalized query text to a canonical place_id."""

    @abstractmethod
    async def find(self, normalized_query: str, locale: str = DEFAULT_LOCALE) -> str | None:
        """Return the bound place_id, or None."""

    @abstractmethod
    async def upsert(self, alias: AliasRecord) -> AliasRecord:
        """Insert-or-ignore an alias.

        Re-binding a key to the place it already names is a no-op that
        returns the stored record.

        Raises:
            AliasConflictError: If the key is bound to a different place.
        """

    @abstractmethod
    async def increment_usage(
        self,
        place_id: str,
        normalized_query: str,
        locale: str = DEFAULT_LOCALE,
    ) -> None:
        """Atomically add one to the alias usage counter."""


class BaseLocationStore(ABC):
    """Mapping from place_id to its canonical record."""

    @abstractmethod
    async def get(self, place_id: str) -> CanonicalLocationRecord | None:
        """Return the record for a place, or None."""

    @abstractmethod
    async def upsert(self, record: CanonicalLocationRecord) -> CanonicalLocationRecord:
        """Insert or fully replace a record keyed by place_id.

        A new record keeps the given ``usage_count``. Replacing an existing
        record preserves its counter and adds one (a re-verification).

        Returns:
            The stored record.
        """

    @abstractmethod
    async def find_by_proximity(
        self,
        latitude: float,
        longitude: float,
        radius_meters: float,
        accept: Callable[[CanonicalLocationRecord], bool] | None = None,
    ) -> CanonicalLocationRecord | None:
        """Return the nearest record within ``radius_meters`` that ``accept`` allows, or None."""

    @abstractmethod
    async def increment_usage(self, place_id: str) -> None:
        """Atomically add one to the record usage counter."""


class InMemoryAliasIndex(BaseAliasIndex):
    """Dictionary-backed alias index."""

    def __init__(self) -> None:
        self._aliases: dict[tuple[str, str], AliasRecord] = {}
        self._lock = asyncio.Lock()

    async def find(self, normalized_query: str, locale: str = DEFAULT_LOCALE) -> str | None:
        alias = self._aliases.get((locale, normalized_query))
        return alias.place_id if alias else None

    async def upsert(self, alias: AliasRecord) -> AliasRecord:
        key = (alias.locale, alias.normalized_query)
        async with self._lock:
            existing = self._aliases.get(key)
            if existing is None:
                self._aliases[key] = dataclasses.replace(alias)
                return dataclasses.replace(alias)
            if existing.place_id != alias.place_id:
                raise AliasConflictError(alias.normalized_query, existing.place_id, alias.place_id)
            return dataclasses.replace(existing)

    async def increment_usage(
        self,
        place_id: str,
        normalized_query: str,
        locale: str = DEFAULT_LOCALE,
    ) -> None:
        async with self._lock:
            alias = self._aliases.get((locale, normalized_query))
            if alias is not None and alias.place_id == place_id:
                alias.usage_count += 1

    def all(self) -> list[AliasRecord]:
        return [dataclasses.replace(a) for a in self._aliases.values()]


class InMemoryLocationStore(BaseLocationStore):
    """Dictionary-backed canonical location store."""

    def __init__(self) -> None:
        self._records: dict[str, CanonicalLocationRecord] = {}
        self._lock = asyncio.Lock()

    async def get(self, place_id: str) -> CanonicalLocationRecord | None:
        record = self._records.get(place_id)
        return dataclasses.replace(record) if record else None

    async def upsert(self, record: CanonicalLocationRecord) -> CanonicalLocationRecord:
        async with self._lock:
            existing = self._records.get(record.place_id)
            stored = dataclasses.replace(record)
            if existing is not None:
                stored.usage_count = existing.usage_count + 1
            self._records[record.place_id] = stored
            return dataclasses.replace(stored)

    async def find_by_proximity(
        self,
        latitude: float,
        longitude: float,
        radius_meters: float,
        accept: Callable[[CanonicalLocationRecord], bool] | None = None,
    ) -> CanonicalLocationRecord | None:
        nearest = nearest_within(self._records.values(), latitude, longitude, radius_meters, accept)
        return dataclasses.replace(nearest) if nearest else None

    async def increment_usage(self, place_id: str) -> None:
        async with self._lock:
            record = self._records.get(place_id)
            if record is not None:
                record.usage_count += 1

    def all(self) -> list[CanonicalLocationRecord]:
        return [dataclasses.replace(r) for r in self._records.values()]
