"""
Driver matching service.

This module handles:
    - Locating approved drivers around a pickup point
    - Scoring each candidate's fitness for an order
"""

from .locator import DriverCandidate, DriverLocator
from .scoring import GeoScorer, ScoreBreakdown, ScoredCandidate

__all__ = [
    "DriverCandidate",
    "DriverLocator",
    "GeoScorer",
    "ScoreBreakdown",
    "ScoredCandidate",
]
