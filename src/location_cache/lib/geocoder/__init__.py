"""Geocoder library: query normalization, providers, and cache stores.

Public API:
    - normalize_query / hash_query / generate_alias_variants: Query canonicalization
    - distance_meters / is_valid_coordinate: Spatial math
    - Confidence / confidence_of / ttl_days: Confidence policy
    - BaseLocationProvider: Abstract provider interface
    - ProviderResult / BiasLocation: Provider value types
    - GooglePlacesProvider / NominatimProvider: Concrete providers
    - BaseAliasIndex / BaseLocationStore: Store contracts
    - InMemoryAliasIndex / InMemoryLocationStore: Dictionary-backed stores
    - SqlAliasIndex / SqlLocationStore: Database-backed stores
    - get_provider / get_configured_provider: Provider factory/registry
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from location_cache.lib.geocoder.base import (
    BaseLocationProvider,
    BiasLocation,
    GeocodingProviderError,
    ProviderResult,
)
from location_cache.lib.geocoder.cache import SqlAliasIndex, SqlLocationStore
from location_cache.lib.geocoder.confidence import Confidence, confidence_of, expiration_for, ttl_days
from location_cache.lib.geocoder.google_places import GooglePlacesProvider
from location_cache.lib.geocoder.nominatim import NominatimProvider
from location_cache.lib.geocoder.normalize import (
    ALIAS_DICTIONARY,
    coordinate_query,
    generate_alias_variants,
    hash_query,
    normalize_query,
)
from location_cache.lib.geocoder.single_flight import SingleFlight
from location_cache.lib.geocoder.spatial import distance_meters, is_valid_coordinate
from location_cache.lib.geocoder.store import (
    AliasConflictError,
    AliasRecord,
    BaseAliasIndex,
    BaseLocationStore,
    CanonicalLocationRecord,
    InMemoryAliasIndex,
    InMemoryLocationStore,
    MatchType,
)

if TYPE_CHECKING:
    from location_cache.core.config import Settings

# Provider registry
_PROVIDERS: dict[str, type[BaseLocationProvider]] = {
    "google": GooglePlacesProvider,
    "nominatim": NominatimProvider,
}


def get_available_providers() -> list[str]:
    """Return the names of all registered providers, sorted."""
    return sorted(_PROVIDERS.keys())


def get_provider(provider: str = "google", **kwargs: Any) -> BaseLocationProvider:
    """Get a provider instance by registry name.

    Args:
        provider: Registry name (e.g., "google").
        **kwargs: Additional arguments forwarded to the provider constructor.

    Returns:
        An instance of the requested provider.

    Raises:
        ValueError: If the provider is not registered.
    """
    cls = _PROVIDERS.get(provider)
    if cls is None:
        msg = f"Unknown geocoder provider: {provider!r}. Available: {get_available_providers()}"
        raise ValueError(msg)
    return cls(**kwargs)


def get_configured_provider(settings: Settings) -> BaseLocationProvider:
    """Build the provider named by ``settings.geocoder_provider``.

    Raises:
        ValueError: If the provider is unknown or missing required configuration.
    """
    provider_kwargs: dict[str, dict[str, Any]] = {
        "google": {
            "api_key": settings.geocoder_google_api_key or "",
            "timeout": settings.geocoder_google_timeout,
            "bias_radius_meters": settings.geocoder_google_bias_radius_meters,
        },
        "nominatim": {
            "timeout": settings.geocoder_nominatim_timeout,
            "email": settings.geocoder_nominatim_email,
        },
    }
    name = settings.geocoder_provider
    provider = get_provider(name, **provider_kwargs.get(name, {}))
    if not provider.is_configured:
        msg = f"Geocoder provider {name!r} is not configured (missing API key?)"
        raise ValueError(msg)
    return provider


__all__ = [
    "ALIAS_DICTIONARY",
    "AliasConflictError",
    "AliasRecord",
    "BaseAliasIndex",
    "BaseLocationProvider",
    "BaseLocationStore",
    "BiasLocation",
    "CanonicalLocationRecord",
    "Confidence",
    "GeocodingProviderError",
    "GooglePlacesProvider",
    "InMemoryAliasIndex",
    "InMemoryLocationStore",
    "MatchType",
    "NominatimProvider",
    "ProviderResult",
    "SingleFlight",
    "SqlAliasIndex",
    "SqlLocationStore",
    "confidence_of",
    "coordinate_query",
    "distance_meters",
    "expiration_for",
    "generate_alias_variants",
    "get_available_providers",
    "get_configured_provider",
    "get_provider",
    "hash_query",
    "is_valid_coordinate",
    "normalize_query",
    "ttl_days",
]
