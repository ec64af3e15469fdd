"""
Dispatch engine configuration.

All tunables are read from the ``DISPATCH`` settings dict so operators can
change radii, thresholds and cadences per environment without code changes.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict

from django.conf import settings


DEFAULT_DISPATCH_CONFIG: Dict[str, Any] = {
    # Candidate search
    "SEARCH_RADIUS_MILES": 15.0,
    "REJECTION_RADIUS_MILES": 20.0,

    # Scoring
    "DISTANCE_HORIZON_MILES": 15.0,    # distance score hits 0 here
    "MAX_OPEN_ORDERS": 3,              # workload score hits 0 here
    "DEFAULT_RATING": 4.0,
    "WEIGHT_DISTANCE": 0.4,
    "WEIGHT_RATING": 0.3,
    "WEIGHT_AVAILABILITY": 0.2,
    "WEIGHT_WORKLOAD": 0.1,

    # Decision policy
    "AUTO_ASSIGN_THRESHOLD": 0.7,
    "BROADCAST_FANOUT": 5,
    "MAX_ASSIGN_ATTEMPTS": 3,

    # Collaborator calls
    "RETRY_ATTEMPTS": 2,
    "RETRY_DELAY_SECONDS": 0.0,

    # Queue
    "QUEUE_ENABLED": True,
    "QUEUE_NOTIFY_LIMIT": 3,

    # Background cadences (seconds)
    "SWEEP_INTERVAL_SECONDS": 30,
    "LOCATION_MAINTENANCE_INTERVAL_SECONDS": 60,
    "NOTIFICATION_CLEANUP_INTERVAL_SECONDS": 300,

    # Windows
    "STALE_PENDING_SECONDS": 300,
    "NOTIFICATION_RETENTION_DAYS": 7,
    "DRIVER_LOCATION_STALE_SECONDS": 600,

    "LOCATION_MAINTENANCE_HOOK": "drivers.services.report_stale_locations",
}


@dataclass(frozen=True)
class DispatchConfig:
    search_radius_miles: float = 15.0
    rejection_radius_miles: float = 20.0
    distance_horizon_miles: float = 15.0
    max_open_orders: int = 3
    default_rating: float = 4.0
    weight_distance: float = 0.4
    weight_rating: float = 0.3
    weight_availability: float = 0.2
    weight_workload: float = 0.1
    auto_assign_threshold: float = 0.7
    broadcast_fanout: int = 5
    max_assign_attempts: int = 3
    retry_attempts: int = 2
    retry_delay_seconds: float = 0.0
    queue_enabled: bool = True
    queue_notify_limit: int = 3
    sweep_interval_seconds: int = 30
    location_maintenance_interval_seconds: int = 60
    notification_cleanup_interval_seconds: int = 300
    stale_pending_seconds: int = 300
    notification_retention_days: int = 7
    driver_location_stale_seconds: int = 600
    location_maintenance_hook: str = field(default="drivers.services.report_stale_locations")

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "DispatchConfig":
        merged = {**DEFAULT_DISPATCH_CONFIG, **(values or {})}
        kwargs = {}
        for f in fields(cls):
            key = f.name.upper()
            if key in merged:
                kwargs[f.name] = merged[key]
        return cls(**kwargs)

    @classmethod
    def from_settings(cls) -> "DispatchConfig":
        return cls.from_dict(getattr(settings, "DISPATCH", {}))
