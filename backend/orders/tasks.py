"""Celery tasks for order dispatch background processing."""

from celery import shared_task
import logging

logger = logging.getLogger(__name__)


def _engine():
    from services.dispatch.engine import get_engine
    return get_engine()


@shared_task
def dispatch_order_task(order_id: int, radius_miles=None):
    """
    Run one dispatch cycle for an order.

    Scheduled by the change-feed listener for new and reopened orders and by
    the sweeper for orders that stayed pending too long.
    """
    try:
        result = _engine().orchestrator.dispatch(order_id, radius_miles=radius_miles)
        return result.outcome.value
    except Exception:
        logger.exception("Error dispatching order %s", order_id)
        return None


@shared_task
def handle_rejection_task(order_id: int, driver_id: int):
    """Re-dispatch an order after a driver declined it."""
    try:
        result = _engine().orchestrator.handle_rejection(order_id, driver_id)
        return result.outcome.value
    except Exception:
        logger.exception("Error handling rejection of order %s by driver %s", order_id, driver_id)
        return None


@shared_task
def sweep_pending_orders_task():
    try:
        report = _engine().sweeper.sweep_pending_orders()
        return {
            "redispatched": report.redispatched,
            "resurfaced": report.resurfaced,
            "failed": report.failed,
        }
    except Exception:
        logger.exception("Pending order sweep failed")
        return None


@shared_task
def location_maintenance_task():
    try:
        return _engine().sweeper.location_maintenance_tick()
    except Exception:
        logger.exception("Location maintenance failed")
        return None


@shared_task
def purge_notification_history_task():
    try:
        return _engine().sweeper.purge_notification_history()
    except Exception:
        logger.exception("Notification cleanup failed")
        return None


class CeleryDispatchScheduler:
    """Runs each order's dispatch as its own Celery task."""

    def dispatch(self, order_id: int) -> None:
        dispatch_order_task.delay(order_id)

    def rejection(self, order_id: int, driver_id: int) -> None:
        handle_rejection_task.delay(order_id, driver_id)
