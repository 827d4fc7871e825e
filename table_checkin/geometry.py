"""
Geometry Helpers

Pure functions used for table matching and zone boundaries.
No I/O, no failure modes.

Version: 1.0.0
"""

import math
from typing import Sequence

# Mean Earth radius in meters
EARTH_RADIUS_M = 6_371_000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points using the Haversine formula.

    Args:
        lat1: Latitude of first point (degrees)
        lon1: Longitude of first point (degrees)
        lat2: Latitude of second point (degrees)
        lon2: Longitude of second point (degrees)

    Returns:
        float: Distance in meters
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def distance_between(a, b) -> float:
    """Distance in meters between two objects exposing latitude/longitude."""
    return haversine_m(a.latitude, a.longitude, b.latitude, b.longitude)


def is_within_radius(
    lat: float,
    lon: float,
    center_lat: float,
    center_lon: float,
    radius_m: float,
) -> bool:
    """Check if a point lies inside a circle (inclusive)."""
    return haversine_m(lat, lon, center_lat, center_lon) <= radius_m


def is_inside_polygon(lat: float, lon: float, vertices: Sequence) -> bool:
    """
    Ray-casting point-in-polygon test.

    Vertices are objects exposing latitude/longitude; the ring is closed
    implicitly. Fewer than three vertices never contain anything.
    """
    if len(vertices) < 3:
        return False

    inside = False
    j = len(vertices) - 1
    for i in range(len(vertices)):
        xi, yi = vertices[i].latitude, vertices[i].longitude
        xj, yj = vertices[j].latitude, vertices[j].longitude

        crosses = (yi > lon) != (yj > lon)
        if crosses and lat < (xj - xi) * (lon - yi) / (yj - yi) + xi:
            inside = not inside
        j = i

    return inside
