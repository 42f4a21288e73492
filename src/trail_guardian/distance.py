"""Distance and grade calculations between trail points.

Grade uses a flat equirectangular projection with a fixed meters-per-degree
constant. It is a local approximation (no ellipsoid), good enough over the
few meters separating consecutive GPS fixes. Trip distance is measured
along the WGS84 ellipsoid.
"""

import math

from geopy.distance import geodesic

# Approximate meters per degree of latitude (and of longitude at the equator)
METERS_PER_DEGREE = 111_000.0


def geodesic_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distance in meters between two points along the WGS84 ellipsoid."""
    return geodesic((lat1, lng1), (lat2, lng2)).meters


def equirectangular_distance(
    lat1: float, lng1: float,
    lat2: float, lng2: float,
    meters_per_degree_lat: float = METERS_PER_DEGREE,
    meters_per_degree_lng: float = METERS_PER_DEGREE,
) -> float:
    """Planar distance in meters between two nearby points.

    The longitude span is scaled by cos() of the first point's latitude.
    """
    dx = (lat2 - lat1) * meters_per_degree_lat
    dy = (lng2 - lng1) * meters_per_degree_lng * math.cos(math.radians(lat1))
    return math.sqrt(dx * dx + dy * dy)


def grade_percent(altitude_delta: float, distance: float) -> float:
    """Rise over run as a percentage; 0 when the points coincide."""
    if distance > 0:
        return (altitude_delta / distance) * 100
    return 0.0
