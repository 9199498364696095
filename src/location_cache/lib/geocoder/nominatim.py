"""OpenStreetMap Nominatim provider.

Uses the Nominatim search and reverse APIs
(https://nominatim.org/release-docs/develop/api/Overview/).
Free but rate-limited to 1 req/sec.
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

NOMINATIM_BASE_URL = "https://nominatim.openstreetmap.org"
DEFAULT_TIMEOUT = 10.0
DEFAULT_USER_AGENT = "location-cache/0.1"

# Half-width of the viewbox drawn around a bias point, in degrees (~0.5 deg ≈ 55 km)
_BIAS_BOX_DEGREES = 0.5

# OSM feature class → precision category comparable to Google location_type
_CLASS_PRECISION: dict[str, str] = {
    "building": "ROOFTOP",
    "shop": "ROOFTOP",
    "amenity": "ROOFTOP",
    "tourism": "ROOFTOP",
    "highway": "GEOMETRIC_CENTER",
}


class NominatimProvider(BaseLocationProvider):
    """OpenStreetMap Nominatim provider."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        email: str = "",
        user_agent: str = DEFAULT_USER_AGENT,
        base_url: str = NOMINATIM_BASE_URL,
    ) -> None:
        self._timeout = timeout
        self._email = email
        self._user_agent = user_agent
        self._base_url = base_url.rstrip("/")

    @property
    def provider_name(self) -> str:
        return "nominatim"

    @property
    def rate_limit_delay(self) -> float:
        return 1.0

    async def forward_lookup(
        self,
        text: str,
        bias: BiasLocation | None = None,
        country: str | None = None,
    ) -> ProviderResult | None:
        params: dict[str, str | int] = {"q": text, "format": "jsonv2", "limit": 1}
        if country:
            params["countrycodes"] = country.lower()
        if bias is not None:
            params["viewbox"] = ",".join(
                str(v)
                for v in (
                    bias.longitude - _BIAS_BOX_DEGREES,
                    bias.latitude + _BIAS_BOX_DEGREES,
                    bias.longitude + _BIAS_BOX_DEGREES,
                    bias.latitude - _BIAS_BOX_DEGREES,
                )
            )

        try:
            data = await self._get_json("/search", params)
            if isinstance(data, dict) and "error" in data:
                logger.warning(f"Nominatim search error: {data['error']}")
                return None
            if not isinstance(data, list) or not data:
                return None
            return self._parse_place(data[0])
        except GeocodingProviderError as e:
            logger.warning(f"Nominatim forward lookup failed: {e.message}")
            return None

    async def reverse_lookup(self, latitude: float, longitude: float) -> ProviderResult | None:
        params: dict[str, str | int | float] = {"lat": latitude, "lon": longitude, "format": "jsonv2"}
        try:
            data = await self._get_json("/reverse", params)
            if not isinstance(data, dict) or not data or "error" in data:
                return None
            return self._parse_place(data)
        except GeocodingProviderError as e:
            logger.warning(f"Nominatim reverse lookup failed: {e.message}")
            return None

    async def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        if self._email:
            params["email"] = self._email
        headers = {"User-Agent": self._user_agent}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(f"{self._base_url}{path}", params=params, headers=headers)
                response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            logger.warning("Nominatim request timed out (query redacted)")
            raise GeocodingProviderError(self.provider_name, "Request timed out") from e
        except httpx.HTTPStatusError as e:
            logger.warning(f"Nominatim HTTP error {e.response.status_code}")
            raise GeocodingProviderError(
                self.provider_name,
                f"Provider returned HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.ConnectError as e:
            logger.warning("Nominatim connection error")
            raise GeocodingProviderError(self.provider_name, "Connection to provider failed") from e
        except httpx.HTTPError as e:
            logger.warning(f"Nominatim transport error: {type(e).__name__}")
            raise GeocodingProviderError(self.provider_name, f"Request failed: {type(e).__name__}") from e
        except ValueError as e:
            raise GeocodingProviderError(self.provider_name, f"Invalid JSON body: {e}") from e
        except Exception as e:
            logger.exception("Nominatim unexpected error")
            raise GeocodingProviderError(self.provider_name, f"Unexpected error: {e}") from e

    def _parse_place(self, place: dict[str, Any]) -> ProviderResult:
        """Parse one Nominatim place object into a ProviderResult.

        Raises:
            GeocodingProviderError: If identity or geometry is missing or invalid.
        """
        try:
            osm_type = str(place["osm_type"])
            osm_id = place["osm_id"]
            lat = format_coordinate(float(place["lat"]))
            lng = format_coordinate(float(place["lon"]))
            return ProviderResult(
                place_id=f"osm:{osm_type[:1].upper()}{osm_id}",
                formatted_address=place.get("display_name") or "",
                latitude=lat,
                longitude=lng,
                location_type=self._map_precision(place),
                viewport=self._viewport(place.get("boundingbox")),
                raw_response=place,
            )
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Failed to parse Nominatim response: {e}")
            raise GeocodingProviderError(self.provider_name, f"Failed to parse response: {e}") from e

    @staticmethod
    def _map_precision(place: dict[str, Any]) -> str:
        """Map an OSM feature to a precision category."""
        if place.get("addresstype") == "house" or place.get("type") == "house":
            return "ROOFTOP"
        return _CLASS_PRECISION.get(place.get("category") or place.get("class") or "", "APPROXIMATE")

    @staticmethod
    def _viewport(bbox: list[str] | None) -> dict[str, Any] | None:
        """Convert Nominatim ``[south, north, west, east]`` to a Google-style viewport."""
        if not bbox or len(bbox) != 4:
            return None
        south, north, west, east = (float(v) for v in bbox)
        return {
            "northeast": {"lat": north, "lng": east},
            "southwest": {"lat": south, "lng": west},
        }
