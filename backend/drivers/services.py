import logging
from datetime import timedelta

from django.utils import timezone

from drivers.models import DriverProfile
from orders.models import Order

logger = logging.getLogger(__name__)


# DISPATCH-OWNED STATUS
def mark_driver_busy(driver_id: int) -> bool:
    """Flag a driver as busy once they have accepted an order."""
    updated = DriverProfile.objects.filter(user_id=driver_id).update(status="busy")
    if not updated:
        logger.warning("No driver profile for user %s, cannot mark busy", driver_id)
    return bool(updated)


def mark_driver_available(driver_id: int) -> bool:
    """
    Release a driver after delivery or cancellation.

    Drivers still carrying another accepted order stay busy.
    """
    still_working = Order.objects.filter(
        driver_id=driver_id,
        status__in=[Order.STATUS_ACCEPTED, Order.STATUS_PICKED_UP, Order.STATUS_IN_TRANSIT],
    ).exists()
    if still_working:
        return False
    return bool(DriverProfile.objects.filter(user_id=driver_id).update(status="available"))


# PRESENCE
def update_driver_online(profile: DriverProfile, is_online: bool) -> int:
    """
    Set a driver's online flag.

    A driver coming online is told about orders waiting in the queue.

    Returns:
        Number of queued orders the driver was notified about
    """
    was_online = profile.is_online
    profile.is_online = is_online
    profile.save(update_fields=["is_online"])

    if is_online and not was_online:
        from services.dispatch.engine import get_engine
        return get_engine().queue.notify_driver_of_queue_on_coming_online(profile.user_id)
    return 0


def update_driver_location(profile: DriverProfile, lat, lon):
    profile.current_latitude = lat
    profile.current_longitude = lon
    profile.last_location_update = timezone.now()
    profile.save(update_fields=["current_latitude", "current_longitude", "last_location_update"])
    return profile


# MAINTENANCE
def report_stale_locations(config) -> int:
    """
    Default location-maintenance hook.

    Counts online drivers whose last position is older than the configured
    window. The driver apps own presence, so nothing is changed here.
    """
    cutoff = timezone.now() - timedelta(seconds=config.driver_location_stale_seconds)
    stale = DriverProfile.objects.filter(is_online=True, last_location_update__lt=cutoff).count()
    if stale:
        logger.warning("%d online driver(s) have not reported a location since %s", stale, cutoff.isoformat())
    return stale
