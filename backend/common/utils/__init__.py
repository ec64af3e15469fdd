"""Common utility functions."""

from .geo import calculate_distance, has_coordinates, EARTH_RADIUS_MILES
from .retry import call_with_retry

__all__ = [
    "calculate_distance",
    "has_coordinates",
    "EARTH_RADIUS_MILES",
    "call_with_retry",
]
