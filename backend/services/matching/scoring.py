"""
Driver fitness scoring.

Each candidate gets a score in [0, 1] from four weighted factors:

    distance      max(0, 1 - miles / horizon)
    rating        rating / 5 (neutral default when unrated)
    availability  1.0 online, 0.5 offline
    workload      max(0, 1 - open_orders / max_open_orders)

Scoring is pure: no queries, no side effects.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from common.utils import calculate_distance
from services.dispatch.config import DispatchConfig
from .locator import DriverCandidate


@dataclass(frozen=True)
class ScoreBreakdown:
    distance_miles: float
    distance_score: float
    rating_score: float
    availability_score: float
    workload_score: float
    total: float


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: DriverCandidate
    breakdown: ScoreBreakdown

    @property
    def score(self) -> float:
        return self.breakdown.total

    @property
    def driver_id(self) -> int:
        return self.candidate.driver_id


class GeoScorer:
    def __init__(self, config: Optional[DispatchConfig] = None):
        self.config = config or DispatchConfig()

    def distance_score(self, distance_miles: float) -> float:
        return max(0.0, 1.0 - distance_miles / self.config.distance_horizon_miles)

    def rating_score(self, rating: Optional[float]) -> float:
        if rating is None:
            rating = self.config.default_rating
        return float(rating) / 5.0

    def availability_score(self, is_online: bool) -> float:
        return 1.0 if is_online else 0.5

    def workload_score(self, open_orders: int) -> float:
        return max(0.0, 1.0 - (open_orders or 0) / self.config.max_open_orders)

    def breakdown(self, pickup: Tuple[float, float], driver: DriverCandidate) -> ScoreBreakdown:
        """Score one candidate against a pickup point, keeping every factor."""
        distance = calculate_distance(pickup[0], pickup[1], driver.latitude, driver.longitude)

        distance_score = self.distance_score(distance)
        rating_score = self.rating_score(driver.rating)
        availability_score = self.availability_score(driver.is_online)
        workload_score = self.workload_score(driver.open_orders)

        cfg = self.config
        total = (
            distance_score * cfg.weight_distance
            + rating_score * cfg.weight_rating
            + availability_score * cfg.weight_availability
            + workload_score * cfg.weight_workload
        )
        return ScoreBreakdown(
            distance_miles=distance,
            distance_score=distance_score,
            rating_score=rating_score,
            availability_score=availability_score,
            workload_score=workload_score,
            total=min(1.0, max(0.0, total)),
        )

    def score(self, order, driver: DriverCandidate) -> float:
        """Fitness of ``driver`` for ``order`` in [0, 1]."""
        return self.breakdown(pickup_of(order), driver).total

    def rank(self, order, candidates: Sequence[DriverCandidate]) -> List[ScoredCandidate]:
        """
        Score and sort candidates best first.

        Ties keep locator order (nearest first) and then driver id, so the
        ranking is stable for identical inputs.
        """
        pickup = pickup_of(order)
        scored = [ScoredCandidate(c, self.breakdown(pickup, c)) for c in candidates]
        scored.sort(key=lambda s: (-s.score, s.candidate.distance_miles, s.driver_id))
        return scored


def pickup_of(order) -> Tuple[float, float]:
    return float(order.pickup_latitude), float(order.pickup_longitude)
