"""
Great-circle distance helpers.

Distances are in statute miles; callers are responsible for passing
coordinates in valid degree ranges.
"""
from dataclasses import dataclass
from math import atan2, cos, radians, sin, sqrt

EARTH_RADIUS_MILES = 3959


@dataclass(frozen=True)
class Coordinate:
    """A latitude/longitude pair in decimal degrees."""

    lat: float
    lng: float


def haversine_miles(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance between two points, in miles."""
    d_lat = radians(b.lat - a.lat)
    d_lng = radians(b.lng - a.lng)

    h = (
        sin(d_lat / 2) ** 2
        + cos(radians(a.lat)) * cos(radians(b.lat)) * sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_MILES * 2 * atan2(sqrt(h), sqrt(1 - h))
