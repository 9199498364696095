"""Great-circle distance and coordinate range checks."""

import math

EARTH_RADIUS_METERS = 6_371_000.0

# Metres per degree of latitude (and of longitude at the equator)
_METERS_PER_DEGREE = 111_320.0


def distance_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance between two points on a spherical earth.

    Args:
        lat1: Latitude of the first point in decimal degrees.
        lng1: Longitude of the first point in decimal degrees.
        lat2: Latitude of the second point in decimal degrees.
        lng2: Longitude of the second point in decimal degrees.

    Returns:
        Distance in metres.
    """
    if lat1 == lat2 and lng1 == lng2:
        return 0.0

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Clamp guards against a > 1 from floating point error on antipodal points
    c = 2 * math.atan2(math.sqrt(min(a, 1.0)), math.sqrt(max(1.0 - a, 0.0)))
    return EARTH_RADIUS_METERS * c


def is_valid_coordinate(lat: float, lng: float) -> bool:
    """Range check only; says nothing about land or service areas."""
    return -90 <= lat <= 90 and -180 <= lng <= 180


def is_same_location(
    lat1: float,
    lng1: float,
    lat2: float,
    lng2: float,
    threshold_meters: float = 50.0,
) -> bool:
    """Whether two points are within ``threshold_meters`` of each other."""
    return distance_meters(lat1, lng1, lat2, lng2) <= threshold_meters


def meters_to_degrees(meters: float, latitude: float) -> tuple[float, float]:
    """Convert a radius in metres to (latitude, longitude) degree deltas.

    Used for bounding-box prefilters. The longitude delta widens toward the
    poles and is capped at 180 degrees.

    Args:
        meters: Radius in metres.
        latitude: Latitude at which the box is centred.

    Returns:
        Tuple of (lat_delta, lng_delta) in degrees.
    """
    if meters <= 0:
        return 0.0, 0.0

    lat_deg = meters / _METERS_PER_DEGREE
    cos_lat = math.cos(math.radians(latitude))
    if cos_lat < 1e-9:
        return lat_deg, 180.0
    lng_deg = min(meters / (_METERS_PER_DEGREE * cos_lat), 180.0)
    return lat_deg, lng_deg
