"""
Find candidate drivers around a pickup point.

Uses driver profiles with a stored live location and filters them by the
shared haversine distance, so the radius used here always agrees with the
distance factor used in scoring.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from django.db.models import Count, Q

from common.utils import calculate_distance
from drivers.models import DriverProfile
from orders.models import Order

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DriverCandidate:
    """Read-only view of a driver considered for an order."""
    driver_id: int
    latitude: Optional[float]
    longitude: Optional[float]
    is_online: bool
    is_approved: bool
    onboarding_completed: bool
    open_orders: int = 0
    rating: Optional[float] = None
    distance_miles: float = 0.0


def _approved_profiles(exclude_driver_ids: Iterable[int] = ()):
    qs = (
        DriverProfile.objects
        .filter(is_active=True, is_approved=True, onboarding_completed=True)
        .annotate(
            open_orders=Count(
                "user__assigned_orders",
                filter=Q(user__assigned_orders__status__in=Order.OPEN_DRIVER_STATUSES),
            )
        )
    )
    excluded = set(exclude_driver_ids or ())
    if excluded:
        qs = qs.exclude(user_id__in=excluded)
    return qs


def _to_candidate(profile: DriverProfile, distance: float = 0.0) -> DriverCandidate:
    return DriverCandidate(
        driver_id=profile.user_id,
        latitude=float(profile.current_latitude) if profile.current_latitude is not None else None,
        longitude=float(profile.current_longitude) if profile.current_longitude is not None else None,
        is_online=profile.is_online,
        is_approved=profile.is_approved,
        onboarding_completed=profile.onboarding_completed,
        open_orders=getattr(profile, "open_orders", 0) or 0,
        rating=float(profile.rating) if profile.rating is not None else None,
        distance_miles=distance,
    )


class DriverLocator:
    """Queries the driver store for dispatch candidates."""

    def find_candidates(
        self,
        lat: float,
        lng: float,
        radius_miles: float,
        exclude_driver_ids: Iterable[int] = (),
    ) -> List[DriverCandidate]:
        """
        Approved, active drivers with known coordinates inside ``radius_miles``.

        Args:
            lat: Pickup latitude
            lng: Pickup longitude
            radius_miles: Search radius in miles
            exclude_driver_ids: Drivers never to return (e.g. previous rejectors)

        Returns:
            Candidates sorted nearest first; empty when nobody is in range
        """
        profiles = _approved_profiles(exclude_driver_ids).filter(
            current_latitude__isnull=False,
            current_longitude__isnull=False,
        )

        candidates: List[DriverCandidate] = []
        for profile in profiles:
            distance = calculate_distance(
                float(lat),
                float(lng),
                float(profile.current_latitude),
                float(profile.current_longitude),
            )
            # Only keep drivers inside search radius
            if distance <= float(radius_miles):
                candidates.append(_to_candidate(profile, distance))

        candidates.sort(key=lambda c: (c.distance_miles, c.driver_id))

        logger.debug(
            "Located %d candidate(s) within %.1f mi of (%s, %s)",
            len(candidates), radius_miles, lat, lng,
        )
        return candidates

    def online_drivers(self, exclude_driver_ids: Iterable[int] = ()) -> List[DriverCandidate]:
        """Every online, approved driver regardless of location."""
        profiles = _approved_profiles(exclude_driver_ids).filter(is_online=True).order_by("user_id")
        return [_to_candidate(p) for p in profiles]

    def approved_drivers(self, exclude_driver_ids: Iterable[int] = ()) -> List[DriverCandidate]:
        """Every approved driver, online or not."""
        profiles = _approved_profiles(exclude_driver_ids).order_by("user_id")
        return [_to_candidate(p) for p in profiles]

    def has_online_drivers(self, exclude_driver_ids: Iterable[int] = ()) -> bool:
        qs = DriverProfile.objects.filter(
            is_active=True, is_approved=True, onboarding_completed=True, is_online=True,
        )
        excluded = set(exclude_driver_ids or ())
        if excluded:
            qs = qs.exclude(user_id__in=excluded)
        return qs.exists()
