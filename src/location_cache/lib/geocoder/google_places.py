"""Google Places provider.

Forward lookups use Places Autocomplete to pick the best prediction and then
Place Details for its exact geometry
(https://developers.google.com/maps/documentation/places/web-service).
Reverse lookups use the Geocoding API ``latlng`` query. Requires an API key.
"""

from typing import Any

import httpx
from loguru import logger

from location_cache.lib.geocoder.base import (
    BaseLocationProvider,
    BiasLocation,
    GeocodingProviderError,
    ProviderResult,
)
from location_cache.lib.geocoder.normalize import format_coordinate

AUTOCOMPLETE_URL = "https://maps.googleapis.com/maps/api/place/autocomplete/json"
DETAILS_URL = "https://maps.googleapis.com/maps/api/place/details/json"
GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
DEFAULT_TIMEOUT = 10.0
DEFAULT_BIAS_RADIUS_METERS = 50_000

_ERROR_STATUSES = ("REQUEST_DENIED", "OVER_QUERY_LIMIT", "INVALID_REQUEST")


class GooglePlacesProvider(BaseLocationProvider):
    """Google Places / Geocoding provider."""

    def __init__(
        self,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        bias_radius_meters: int = DEFAULT_BIAS_RADIUS_METERS,
    ) -> None:
        self._api_key = api_key
        self._timeout = timeout
        self._bias_radius_meters = bias_radius_meters

    @property
    def provider_name(self) -> str:
        return "google_places"

    @property
    def requires_api_key(self) -> bool:
        return True

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def forward_lookup(
        self,
        text: str,
        bias: BiasLocation | None = None,
        country: str | None = None,
    ) -> ProviderResult | None:
        """Resolve text via autocomplete plus place details.

        Args:
            text: Query text as typed by the caller.
            bias: Optional point to rank nearby predictions higher.
            country: Optional ISO 3166-1 alpha-2 country filter.

        Returns:
            ProviderResult or None on no match or provider failure.
        """
        if not self.is_configured:
            logger.warning("Google Places API key not configured")
            return None

        params: dict[str, str | int] = {"input": text, "key": self._api_key}
        if bias is not None:
            params["location"] = f"{bias.latitude},{bias.longitude}"
            params["radius"] = self._bias_radius_meters
        if country:
            params["components"] = f"country:{country.lower()}"

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                predictions = await self._get_json(client, AUTOCOMPLETE_URL, params)
                place_id = self._parse_autocomplete(predictions)
                if place_id is None:
                    return None

                details = await self._get_json(
                    client,
                    DETAILS_URL,
                    {"place_id": place_id, "key": self._api_key},
                )
            return self._parse_details(place_id, details)
        except GeocodingProviderError as e:
            logger.warning(f"Google Places forward lookup failed: {e.message}")
            return None

    async def reverse_lookup(self, latitude: float, longitude: float) -> ProviderResult | None:
        """Resolve coordinates via the Geocoding API.

        Returns:
            ProviderResult or None on no match or provider failure.
        """
        if not self.is_configured:
            logger.warning("Google Places API key not configured")
            return None

        params = {"latlng": f"{latitude},{longitude}", "key": self._api_key}
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                data = await self._get_json(client, GEOCODE_URL, params)
            return self._parse_geocode(data)
        except GeocodingProviderError as e:
            logger.warning(f"Google reverse lookup failed: {e.message}")
            return None

    async def _get_json(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        """GET a Google endpoint and decode the JSON body.

        Raises:
            GeocodingProviderError: On transport errors or a body that is not a JSON object.
        """
        try:
            response = await client.get(url, params=params)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as e:
            logger.warning("Google Places request timed out (query redacted)")
            raise GeocodingProviderError(self.provider_name, "Request timed out") from e
        except httpx.HTTPStatusError as e:
            logger.warning(f"Google Places HTTP error {e.response.status_code}")
            raise GeocodingProviderError(
                self.provider_name,
                f"Provider returned HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.ConnectError as e:
            logger.warning("Google Places connection error")
            raise GeocodingProviderError(self.provider_name, "Connection to provider failed") from e
        except httpx.HTTPError as e:
            logger.warning(f"Google Places transport error: {type(e).__name__}")
            raise GeocodingProviderError(self.provider_name, f"Request failed: {type(e).__name__}") from e
        except ValueError as e:
            raise GeocodingProviderError(self.provider_name, f"Invalid JSON body: {e}") from e
        except Exception as e:
            logger.exception("Google Places unexpected error")
            raise GeocodingProviderError(self.provider_name, f"Unexpected error: {e}") from e

        if not isinstance(body, dict):
            raise GeocodingProviderError(self.provider_name, f"Unexpected response body: {type(body).__name__}")
        return body

    def _check_status(self, data: dict[str, Any]) -> bool:
        """Return False for ZERO_RESULTS, True for OK, raise otherwise."""
        api_status = data.get("status", "UNKNOWN")
        if api_status == "ZERO_RESULTS":
            return False
        if api_status in _ERROR_STATUSES:
            msg = data.get("error_message", api_status)
            raise GeocodingProviderError(self.provider_name, f"API error: {msg}")
        if api_status != "OK":
            raise GeocodingProviderError(self.provider_name, f"Unexpected API status: {api_status}")
        return True

    def _parse_autocomplete(self, data: dict[str, Any]) -> str | None:
        """Return the place_id of the top prediction, or None."""
        if not self._check_status(data):
            return None
        predictions = data.get("predictions") or []
        if not isinstance(predictions, list) or not predictions or not isinstance(predictions[0], dict):
            return None
        return predictions[0].get("place_id") or None

    def _parse_details(self, place_id: str, data: dict[str, Any]) -> ProviderResult | None:
        """Parse a Place Details response into a ProviderResult."""
        if not self._check_status(data):
            return None
        result = data.get("result")
        if not isinstance(result, dict) or not result:
            return None
        return self._build_result(place_id, result, data)

    def _parse_geocode(self, data: dict[str, Any]) -> ProviderResult | None:
        """Parse a Geocoding API response into a ProviderResult."""
        if not self._check_status(data):
            return None
        results = data.get("results") or []
        if not isinstance(results, list) or not results or not isinstance(results[0], dict):
            return None
        best = results[0]
        place_id = best.get("place_id")
        if not place_id:
            raise GeocodingProviderError(self.provider_name, "Result has no place_id")
        return self._build_result(place_id, best, data)

    def _build_result(
        self,
        place_id: str,
        result: dict[str, Any],
        raw: dict[str, Any],
    ) -> ProviderResult:
        geometry = result.get("geometry") or {}
        try:
            location = geometry["location"]
            lat = format_coordinate(float(location["lat"]))
            lng = format_coordinate(float(location["lng"]))
            return ProviderResult(
                place_id=place_id,
                formatted_address=result.get("formatted_address") or "",
                latitude=lat,
                longitude=lng,
                location_type=geometry.get("location_type"),
                viewport=geometry.get("viewport"),
                raw_response=raw,
            )
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Failed to parse Google Places geometry: {e}")
            raise GeocodingProviderError(self.provider_name, f"Failed to parse response: {e}") from e
