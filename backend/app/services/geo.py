"""Great-circle distance helpers for location queries over report coordinates."""

import math

EARTH_RADIUS_METERS = 6_371_000
METERS_PER_DEGREE = 111_000


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distance in meters between two WGS84 points."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(a)))


def bounding_box(lat: float, lng: float, radius_m: float) -> tuple[float, float, float, float]:
    """
    Approximate (min_lat, max_lat, min_lng, max_lng) enclosing a circle.

    Used as a coarse index-friendly prefilter; callers still check the exact
    distance. Does not wrap across the antimeridian.
    """
    lat_delta = radius_m / METERS_PER_DEGREE
    # cos() shrinks toward the poles; floor it so the box stays finite
    lng_delta = radius_m / (METERS_PER_DEGREE * max(math.cos(math.radians(lat)), 1e-6))
    return (
        max(lat - lat_delta, -90.0),
        min(lat + lat_delta, 90.0),
        max(lng - lng_delta, -180.0),
        min(lng + lng_delta, 180.0),
    )
