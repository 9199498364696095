"""LocationAlias model — normalized query text bound to a canonical place."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from location_cache.models.base import Base, UUIDMixin


class LocationAlias(Base, UUIDMixin):
    """One query variant; many aliases may reference the same place."""

    __tablename__ = "location_aliases"

    normalized_query: Mapped[str] = mapped_column(Text, nullable=False)
    original_query: Mapped[str] = mapped_column(Text, nullable=False)
    place_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("geocode_locations.place_id"), nullable=False, index=True
    )
    match_type: Mapped[str] = mapped_column(String(10), nullable=False)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    locale: Mapped[str] = mapped_column(String(10), nullable=False, default="en")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    location = relationship("CanonicalLocation", back_populates="aliases", lazy="raise")

    __table_args__ = (UniqueConstraint("normalized_query", "locale", name="uq_alias_query_locale"),)
