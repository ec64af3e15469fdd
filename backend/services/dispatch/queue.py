"""
Holding queue for orders that found no driver.

The queue table is optional infrastructure: deployments that have not
migrated it (or disable it with DISPATCH["QUEUE_ENABLED"]) keep dispatching,
they only lose the holding guarantee for the no-driver case. Availability is
resolved once and cached for the life of the process.
"""

import logging
from datetime import timedelta
from typing import Dict, List, Optional

from django.db import DatabaseError, IntegrityError, connection, transaction
from django.utils import timezone
from django.utils.functional import cached_property

from orders.models import Order, QueueEntry
from realtime.notifications import NotificationGateway, driver_order_notice
from .config import DispatchConfig

logger = logging.getLogger(__name__)


class QueueManager:
    def __init__(self, gateway: NotificationGateway, config: Optional[DispatchConfig] = None):
        self.gateway = gateway
        self.config = config or DispatchConfig()

    @cached_property
    def is_available(self) -> bool:
        """Whether the queue table exists and is enabled."""
        if not self.config.queue_enabled:
            logger.info("Order queue disabled by configuration")
            return False
        try:
            tables = connection.introspection.table_names()
        except DatabaseError:
            logger.warning("Could not inspect database tables, order queue disabled", exc_info=True)
            return False
        if QueueEntry._meta.db_table not in tables:
            logger.warning("Order queue table not found - queueing disabled (this is optional)")
            return False
        return True

    def enqueue(self, order_id: int) -> Optional[bool]:
        """
        Hold an order until a driver shows up.

        Returns:
            True if a new entry was created, False if the order was already
            waiting, None if the queue is unavailable
        """
        if not self.is_available:
            return None

        try:
            existing = QueueEntry.objects.filter(order_id=order_id).first()
            if existing is not None:
                if existing.status == QueueEntry.STATUS_WAITING:
                    return False
                # Previously served entry, open a new holding period
                reopened = QueueEntry.objects.filter(
                    pk=existing.pk, status=QueueEntry.STATUS_ASSIGNED
                ).update(status=QueueEntry.STATUS_WAITING, enqueued_at=timezone.now(), updated_at=timezone.now())
                if not reopened:
                    return False
            else:
                with transaction.atomic():
                    QueueEntry.objects.create(order_id=order_id, status=QueueEntry.STATUS_WAITING)
        except IntegrityError:
            # Concurrent enqueue for the same order won the insert
            return False
        except DatabaseError:
            logger.warning("Failed to enqueue order %s, continuing without queue", order_id, exc_info=True)
            return None

        logger.info("Order %s added to queue", order_id)
        return True

    def list_waiting(self, limit: Optional[int] = None) -> List[QueueEntry]:
        """Waiting entries, oldest first."""
        if not self.is_available:
            return []
        qs = (
            QueueEntry.objects
            .filter(status=QueueEntry.STATUS_WAITING)
            .select_related("order")
            .order_by("enqueued_at", "id")
        )
        if limit is not None:
            qs = qs[:limit]
        return list(qs)

    def mark_assigned(self, order_id: int) -> bool:
        """Flip an order's entry to assigned; no-op when there is none."""
        if not self.is_available:
            return False
        updated = QueueEntry.objects.filter(
            order_id=order_id, status=QueueEntry.STATUS_WAITING
        ).update(status=QueueEntry.STATUS_ASSIGNED, updated_at=timezone.now())
        if updated:
            logger.info("Order %s removed from queue", order_id)
        return bool(updated)

    def notify_driver_of_queue_on_coming_online(self, driver_id: int) -> int:
        """
        Tell a driver who just came online about the oldest waiting orders.

        The driver still has to accept through the normal acceptance path.

        Returns:
            Number of notifications sent
        """
        entries = self.list_waiting(limit=self.config.queue_notify_limit)
        sent = 0
        for entry in entries:
            order = entry.order
            if order.status not in Order.CLAIMABLE_STATUSES:
                continue
            notice = driver_order_notice(
                order, "queued", extra={"queued_since": entry.enqueued_at.isoformat()}
            )
            if self.gateway.notify(driver_id, notice):
                sent += 1

        if entries:
            logger.info("Notified driver %s about %d queued order(s)", driver_id, sent)
        return sent

    def stats(self) -> Dict[str, int]:
        """Queue counts for the last 24 hours."""
        if not self.is_available:
            return {"waiting": 0, "assigned": 0, "total": 0, "available": False}
        since = timezone.now() - timedelta(hours=24)
        recent = QueueEntry.objects.filter(enqueued_at__gte=since)
        waiting = recent.filter(status=QueueEntry.STATUS_WAITING).count()
        assigned = recent.filter(status=QueueEntry.STATUS_ASSIGNED).count()
        return {"waiting": waiting, "assigned": assigned, "total": waiting + assigned, "available": True}
