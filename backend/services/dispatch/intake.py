"""
Order change-feed listener.

Receives decoded change events and turns them into dispatch work:

    OrderInserted                       -> dispatch
    OrderStatusChanged(x -> pending)    -> dispatch again (reopened / released)
    OrderStatusChanged(-> accepted)     -> driver busy, customer notified, queue entry closed
    OrderStatusChanged(-> picked_up ...) -> customer notified
    OrderStatusChanged(-> delivered/cancelled) -> driver released, customer notified
    OrderRejected                       -> rejection handling

All work runs after the surrounding transaction commits, so handlers only
see committed rows. Events may arrive more than once; every handler is safe
to repeat.
"""

import logging
from typing import Any, Mapping, Protocol

from django.db import transaction

from drivers import services as driver_services
from orders.models import Order
from realtime.notifications import (
    NotificationGateway,
    customer_order_notice,
    driver_order_notice,
)
from .events import OrderEvent, OrderInserted, OrderRejected, OrderStatusChanged, decode_change
from .exceptions import InvalidChangeEvent
from .queue import QueueManager

logger = logging.getLogger(__name__)


class DispatchScheduler(Protocol):
    def dispatch(self, order_id: int) -> None: ...

    def rejection(self, order_id: int, driver_id: int) -> None: ...


_CUSTOMER_UPDATES = (Order.STATUS_PICKED_UP, Order.STATUS_IN_TRANSIT)
_RELEASING = (Order.STATUS_DELIVERED, Order.STATUS_CANCELLED)


class OrderIntakeListener:
    def __init__(self, scheduler: DispatchScheduler, queue: QueueManager, gateway: NotificationGateway):
        self.scheduler = scheduler
        self.queue = queue
        self.gateway = gateway

    def handle_payload(self, payload: Mapping[str, Any]) -> None:
        """Decode a raw change payload and handle it; malformed payloads are dropped with a warning."""
        try:
            event = decode_change(payload)
        except InvalidChangeEvent as exc:
            logger.warning("Ignoring malformed order change %r: %s", payload, exc)
            return
        self.handle(event)

    def handle(self, event: OrderEvent) -> None:
        transaction.on_commit(lambda: self.process(event))

    def process(self, event: OrderEvent) -> None:
        try:
            if isinstance(event, OrderInserted):
                logger.info("New order detected: %s", event.order_id)
                self.scheduler.dispatch(event.order_id)
            elif isinstance(event, OrderStatusChanged):
                self._on_status_changed(event)
            elif isinstance(event, OrderRejected):
                logger.info("Order %s rejected by driver %s", event.order_id, event.driver_id)
                self.scheduler.rejection(event.order_id, event.driver_id)
                self._notify_customer(event.order_id, "rejected")
        except Exception:
            logger.exception("Error handling order event %r", event)

    # ---------------------- Handlers ----------------------

    def _on_status_changed(self, event: OrderStatusChanged) -> None:
        logger.debug("Order %s status %s -> %s", event.order_id, event.from_status, event.to_status)

        if event.to_status == Order.STATUS_PENDING and event.from_status != Order.STATUS_PENDING:
            self.scheduler.dispatch(event.order_id)
        elif event.to_status == Order.STATUS_ACCEPTED:
            self._on_accepted(event)
        elif event.to_status in _CUSTOMER_UPDATES:
            self._notify_customer(event.order_id, event.to_status)
        elif event.to_status in _RELEASING:
            if event.driver_id:
                driver_services.mark_driver_available(event.driver_id)
                if event.to_status == Order.STATUS_CANCELLED:
                    self._notify_driver_cancelled(event)
            self._notify_customer(event.order_id, event.to_status)

    def _on_accepted(self, event: OrderStatusChanged) -> None:
        logger.info("Order %s accepted by driver %s", event.order_id, event.driver_id)
        if event.driver_id:
            driver_services.mark_driver_busy(event.driver_id)
        self.queue.mark_assigned(event.order_id)
        self._notify_customer(event.order_id, Order.STATUS_ACCEPTED)

    def _notify_customer(self, order_id: int, status: str) -> None:
        order = Order.objects.filter(pk=order_id).first()
        if order is None:
            logger.warning("Customer not notified, order %s not found", order_id)
            return
        self.gateway.notify(order.customer_id, customer_order_notice(order, status))

    def _notify_driver_cancelled(self, event: OrderStatusChanged) -> None:
        order = Order.objects.filter(pk=event.order_id).first()
        if order is None:
            return
        notice = driver_order_notice(order, "cancelled")
        self.gateway.notify(event.driver_id, notice)
