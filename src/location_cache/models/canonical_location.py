"""CanonicalLocation model — one authoritative row per provider place_id."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from location_cache.models.base import Base, JSONType, TimestampMixin


class CanonicalLocation(Base, TimestampMixin):
    """Resolved place with coordinates, confidence tier, and cache expiry."""

    __tablename__ = "geocode_locations"

    place_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    formatted_address: Mapped[str] = mapped_column(Text, nullable=False)
    normalized_hash: Mapped[str] = mapped_column(String(32), nullable=False)
    # 8 decimal places ≈ 1.1 mm; read back as float
    latitude: Mapped[float] = mapped_column(Numeric(10, 8, asdecimal=False), nullable=False)
    longitude: Mapped[float] = mapped_column(Numeric(11, 8, asdecimal=False), nullable=False)
    viewport: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    location_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    confidence: Mapped[str] = mapped_column(String(10), nullable=False)
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    raw_response: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    verified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    needs_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    aliases = relationship("LocationAlias", back_populates="location", lazy="raise")

    __table_args__ = (
        Index("ix_geocode_locations_normalized_hash", "normalized_hash"),
        Index("ix_geocode_locations_lat_lng", "latitude", "longitude"),
        Index("ix_geocode_locations_expires_at", "expires_at"),
    )
