"""
Periodic reconciliation.

The change feed is at-least-once at best; a missed insert event would leave
an order pending forever. The sweeper re-drives anything that has been
pending longer than the staleness window, brings held orders back once
drivers are online again, and does the housekeeping ticks.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from django.utils import timezone
from django.utils.module_loading import import_string

from orders.models import Order, OrderRejection
from realtime.models import NotificationRecord
from services.matching import DriverLocator
from services.order_management import guards
from .config import DispatchConfig
from .intake import DispatchScheduler
from .queue import QueueManager

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    redispatched: int = 0
    resurfaced: int = 0
    failed: int = 0


class BackgroundSweeper:
    def __init__(
        self,
        scheduler: DispatchScheduler,
        queue: QueueManager,
        locator: DriverLocator,
        config: Optional[DispatchConfig] = None,
    ):
        self.scheduler = scheduler
        self.queue = queue
        self.locator = locator
        self.config = config or DispatchConfig()

    def sweep_pending_orders(self, now: Optional[datetime] = None, stale_seconds: Optional[int] = None) -> SweepReport:
        """Re-dispatch every order pending longer than the staleness window."""
        now = now or timezone.now()
        window = self.config.stale_pending_seconds if stale_seconds is None else stale_seconds
        cutoff = now - timedelta(seconds=window)

        stale = Order.objects.filter(status=Order.STATUS_PENDING, created_at__lt=cutoff)
        report = self._redispatch(stale)
        if report.redispatched:
            logger.info("Sweep re-dispatched %d stale pending order(s)", report.redispatched)

        report.resurfaced = self.resurface_queued_orders()
        return report

    def emergency_process_all_pending(self) -> SweepReport:
        """Re-dispatch every pending order regardless of age."""
        logger.warning("Emergency: processing all pending orders")
        return self._redispatch(Order.objects.filter(status=Order.STATUS_PENDING))

    def resurface_queued_orders(self) -> int:
        """
        Reopen held orders once someone who has not declined them is online.

        Reopening moves the order back to pending, which the intake listener
        turns into a fresh dispatch. An order whose only online drivers have
        all rejected it stays held.
        """
        if not self.queue.is_available:
            return 0
        if not self.locator.has_online_drivers():
            return 0

        reopened = 0
        for entry in self.queue.list_waiting():
            rejectors = list(
                OrderRejection.objects.filter(order_id=entry.order_id).values_list("driver_id", flat=True)
            )
            if rejectors and not self.locator.has_online_drivers(exclude_driver_ids=rejectors):
                logger.debug("Order %s stays queued, every online driver has declined it", entry.order_id)
                continue
            if guards.reopen_order(entry.order_id, Order.STATUS_NO_DRIVERS):
                reopened += 1
        if reopened:
            logger.info("Resurfaced %d queued order(s)", reopened)
        return reopened

    def location_maintenance_tick(self) -> Any:
        """Run the configured driver-location maintenance hook."""
        hook = import_string(self.config.location_maintenance_hook)
        return hook(self.config)

    def purge_notification_history(self, now: Optional[datetime] = None) -> int:
        """Delete notification history older than the retention window."""
        now = now or timezone.now()
        cutoff = now - timedelta(days=self.config.notification_retention_days)
        deleted, _ = NotificationRecord.objects.filter(created_at__lt=cutoff).delete()
        if deleted:
            logger.info("Cleaned up %d old notification(s)", deleted)
        return deleted

    def _redispatch(self, queryset) -> SweepReport:
        report = SweepReport()
        order_ids = list(queryset.order_by("created_at").values_list("id", flat=True))
        for order_id in order_ids:
            try:
                self.scheduler.dispatch(order_id)
                report.redispatched += 1
            except Exception:
                report.failed += 1
                logger.exception("Failed to schedule dispatch for order %s", order_id)
        return report
