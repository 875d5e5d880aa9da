""" Great-circle distance and the proximity gate. """

import math

from .models import Coordinate


EARTH_RADIUS_M = 6_371_000
PROXIMITY_RADIUS_M = 30.0


def distance(a: Coordinate, b: Coordinate) -> float:
    """Return the haversine distance between two coordinates in meters."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    dphi = math.radians(b.lat - a.lat)
    dlambda = math.radians(b.lng - a.lng)

    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    # rounding can push h a hair past 1 for antipodal points
    h = min(1.0, max(0.0, h))
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def within_radius(measured: float, radius: float = PROXIMITY_RADIUS_M) -> bool:
    # inclusive: exactly on the boundary passes
    return measured <= radius
