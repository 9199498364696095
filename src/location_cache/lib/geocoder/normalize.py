"""Query normalization, content hashing, and alias variant generation.

Free-text queries such as "DLF Mall", "DLF Mall of India" and "dlf mall, noida"
are reduced to a canonical lower-case form so that cache lookups treat
punctuation and spacing variants as the same key.
"""

import hashlib
import re

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

# Coordinates are stored at 8 decimal places (about 1.1 mm at the equator)
COORDINATE_PRECISION = 8

ALIAS_DICTIONARY_VERSION = "2024.1-en"

# Known phrase → common short forms. Matching is by substring of the full
# known phrase against the normalized address, never by token overlap.
ALIAS_DICTIONARY: dict[str, tuple[str, ...]] = {
    "connaught place": ("cp", "connaught", "cp delhi"),
    "dlf mall of india": ("dlf mall", "mall of india", "dlf noida"),
    "cyber city": ("cybercity", "cyber hub", "dlf cyber city"),
    "select citywalk": ("select city", "citywalk", "saket mall"),
    "greater noida": ("gr noida", "greater noida"),
    "gurgaon": ("gurugram", "ggn"),
}


def normalize_query(text: str) -> str:
    """Normalize a search query for consistent cache lookups.

    Lower-cases, replaces punctuation with spaces, collapses runs of
    whitespace and trims. Idempotent and total.

    Args:
        text: Raw query or address text.

    Returns:
        Normalized query string (possibly empty).
    """
    lowered = text.lower()
    stripped = _NON_WORD.sub(" ", lowered)
    return _WHITESPACE.sub(" ", stripped).strip()


def hash_query(text: str) -> str:
    """Return the 128-bit MD5 hex digest of the normalized text.

    Used to detect that two provider responses describe the same place and
    to re-verify stored records. Not a security boundary.
    """
    return hashlib.md5(normalize_query(text).encode("utf-8"), usedforsecurity=False).hexdigest()


def generate_alias_variants(
    formatted_address: str,
    dictionary: dict[str, tuple[str, ...]] | None = None,
) -> set[str]:
    """Generate alias query variants for a resolved address.

    Args:
        formatted_address: Provider-formatted address.
        dictionary: Optional override of the curated phrase dictionary.

    Returns:
        Set of normalized variants, always including the normalized address
        itself (unless it normalizes to an empty string).
    """
    table = ALIAS_DICTIONARY if dictionary is None else dictionary
    normalized = normalize_query(formatted_address)
    variants: set[str] = {normalized} if normalized else set()

    for phrase, short_forms in table.items():
        if normalize_query(phrase) in normalized:
            variants.update(v for v in (normalize_query(s) for s in short_forms) if v)

    return variants


def coordinate_query(latitude: float, longitude: float) -> str:
    """Build the normalized cache key used for reverse lookups."""
    return normalize_query(f"{latitude},{longitude}")


def format_coordinate(value: float) -> float:
    """Round a coordinate to the stored fixed precision."""
    return round(float(value), COORDINATE_PRECISION)
