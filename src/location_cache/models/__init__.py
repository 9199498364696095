"""ORM model registry — import all models so Alembic autogenerate discovers them."""

from location_cache.models.canonical_location import CanonicalLocation
from location_cache.models.location_alias import LocationAlias

__all__ = [
    "CanonicalLocation",
    "LocationAlias",
]
