"""Application configuration via Pydantic Settings.

All configuration is loaded from environment variables following 12-factor principles.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        description="Async SQLAlchemy connection string (postgresql+asyncpg or sqlite+aiosqlite)",
    )

    # Provider selection
    geocoder_provider: str = Field(
        default="google",
        description="Place lookup provider used for cache fills (google or nominatim)",
    )

    # Provider: Google Places
    geocoder_google_api_key: str | None = Field(
        default=None,
        description="Google Places / Geocoding API key",
    )
    geocoder_google_timeout: float = Field(
        default=10.0,
        description="Google request timeout in seconds",
        gt=0,
    )
    geocoder_google_bias_radius_meters: int = Field(
        default=50_000,
        description="Radius around the bias point used to rank autocomplete predictions",
        gt=0,
    )

    # Provider: Nominatim (OpenStreetMap)
    geocoder_nominatim_email: str = Field(
        default="",
        description="Email for Nominatim usage policy compliance",
    )
    geocoder_nominatim_timeout: float = Field(
        default=10.0,
        description="Nominatim request timeout in seconds",
        gt=0,
    )

    # Cache behaviour
    geocoder_min_query_length: int = Field(
        default=2,
        description="Normalized queries shorter than this never reach the provider",
        ge=1,
    )
    geocoder_reverse_radius_meters: float = Field(
        default=50.0,
        description="Proximity radius for serving reverse lookups from the cache",
        gt=0,
    )
    geocoder_alias_locale: str = Field(
        default="en",
        description="Locale tag written on alias records",
    )

    # Drift audit
    drift_threshold_meters: float = Field(
        default=50.0,
        description="Maximum distance between trusted and resolved coordinates counted as accurate",
        gt=0,
    )
    drift_request_delay: float = Field(
        default=0.1,
        description="Delay in seconds between provider requests during a drift audit",
        ge=0,
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for log files (enables file logging with 24h rotation when set)",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in _LOG_LEVELS:
            msg = f"Invalid log_level: {v!r}. Expected one of {', '.join(_LOG_LEVELS)}"
            raise ValueError(msg)
        return upper

    @field_validator("geocoder_provider")
    @classmethod
    def validate_geocoder_provider(cls, v: str) -> str:
        return v.strip().lower()


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()  # type: ignore[call-arg]
