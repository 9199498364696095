"""Shared test fixtures: settings, async SQLite engine, stores, fake provider, and clock."""

import asyncio
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from location_cache.core.config import Settings
from location_cache.lib.geocoder.base import BaseLocationProvider, BiasLocation, ProviderResult
from location_cache.lib.geocoder.normalize import normalize_query
from location_cache.lib.geocoder.store import InMemoryAliasIndex, InMemoryLocationStore
from location_cache.models.base import Base
from location_cache.services.geocoding_service import GeocodingService

T0 = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)


class FakeProvider(BaseLocationProvider):
    """Provider double keyed by normalized query text."""

    def __init__(
        self,
        forward: dict[str, ProviderResult | None] | None = None,
        reverse: ProviderResult | None = None,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.forward_results = {normalize_query(k): v for k, v in (forward or {}).items()}
        self.reverse_result = reverse
        self.delay = delay
        self.error = error
        self.forward_calls: list[tuple[str, BiasLocation | None, str | None]] = []
        self.reverse_calls: list[tuple[float, float]] = []

    @property
    def provider_name(self) -> str:
        return "fake"

    async def forward_lookup(
        self,
        text: str,
        bias: BiasLocation | None = None,
        country: str | None = None,
    ) -> ProviderResult | None:
        self.forward_calls.append((text, bias, country))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.forward_results.get(normalize_query(text))

    async def reverse_lookup(self, latitude: float, longitude: float) -> ProviderResult | None:
        self.reverse_calls.append((latitude, longitude))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reverse_result


class MutableClock:
    """Callable clock whose time tests can move."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def settings() -> Settings:
    """Test application settings."""
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        geocoder_provider="google",
        geocoder_google_api_key="test-key",
        _env_file=None,  # type: ignore[call-arg]
    )


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an in-memory async SQLite engine with the cache tables."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, expire_on_commit=False)


@pytest.fixture
async def async_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    """Per-test async session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def provider_factory() -> type[FakeProvider]:
    return FakeProvider


@pytest.fixture
def alias_index() -> InMemoryAliasIndex:
    return InMemoryAliasIndex()


@pytest.fixture
def location_store() -> InMemoryLocationStore:
    return InMemoryLocationStore()


@pytest.fixture
def make_service(alias_index: InMemoryAliasIndex, location_store: InMemoryLocationStore, clock: MutableClock):
    """Build a GeocodingService over the in-memory stores for a given provider."""

    def _make(provider: BaseLocationProvider, **kwargs: object) -> GeocodingService:
        return GeocodingService(provider, alias_index, location_store, clock=clock, **kwargs)  # type: ignore[arg-type]

    return _make
