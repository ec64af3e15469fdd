"""
Geographic utility functions.

This module provides the one distance calculation used by driver lookup
and driver scoring. Both must agree on who is "within range", so nothing
else in the codebase should compute distances on its own.
"""

from math import radians, cos, sin, atan2, sqrt
from typing import Optional


EARTH_RADIUS_MILES = 3959


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two points in miles using Haversine formula.

    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point

    Returns:
        Distance in miles
    """
    lat1, lon1, lat2, lon2 = map(radians, [float(lat1), float(lon1), float(lat2), float(lon2)])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_MILES * c


def has_coordinates(lat: Optional[float], lon: Optional[float]) -> bool:
    """True when both coordinates are present."""
    return lat is not None and lon is not None
