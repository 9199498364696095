"""Abstract place-lookup provider interface for pluggable provider support."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from location_cache.lib.geocoder.spatial import is_valid_coordinate


@dataclass(frozen=True)
class BiasLocation:
    """Point used to rank provider candidates near a caller."""

    latitude: float
    longitude: float


@dataclass
class ProviderResult:
    """A single candidate location returned by a provider."""

    place_id: str
    formatted_address: str
    latitude: float
    longitude: float
    location_type: str | None = None
    viewport: dict[str, Any] | None = None
    raw_response: dict[str, Any] | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.place_id:
            msg = "place_id must be a non-empty string"
            raise ValueError(msg)
        if not is_valid_coordinate(self.latitude, self.longitude):
            msg = f"coordinates out of range: ({self.latitude}, {self.longitude})"
            raise ValueError(msg)


class GeocodingProviderError(Exception):
    """Raised inside a provider on transport, service, or parse errors.

    Public provider operations translate this into ``None`` so callers only
    see present-or-absent results.

    Args:
        provider_name: Name of the failing provider.
        message: Human-readable error description.
        status_code: Optional HTTP status code from the provider.
    """

    def __init__(self, provider_name: str, message: str, status_code: int | None = None) -> None:
        self.provider_name = provider_name
        self.message = message
        self.status_code = status_code
        super().__init__(f"{provider_name}: {message}")


class BaseLocationProvider(ABC):
    """Abstract provider interface. All providers must implement this."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique name identifying this provider, stored as the record source."""

    @property
    def requires_api_key(self) -> bool:
        """Whether this provider requires an API key to function."""
        return False

    @property
    def is_configured(self) -> bool:
        """Whether this provider has all required configuration (e.g., API keys)."""
        return True

    @property
    def rate_limit_delay(self) -> float:
        """Minimum delay in seconds between requests (for rate-limited providers)."""
        return 0.0

    @abstractmethod
    async def forward_lookup(
        self,
        text: str,
        bias: BiasLocation | None = None,
        country: str | None = None,
    ) -> ProviderResult | None:
        """Resolve free text to at most one candidate location.

        Args:
            text: Query text as typed by the caller.
            bias: Optional point to rank nearby candidates higher.
            country: Optional ISO 3166-1 alpha-2 country filter.

        Returns:
            ProviderResult, or None on no match or any provider failure.
        """

    @abstractmethod
    async def reverse_lookup(self, latitude: float, longitude: float) -> ProviderResult | None:
        """Resolve coordinates to at most one candidate location.

        Returns:
            ProviderResult, or None on no match or any provider failure.
        """
