"""
Core order lifecycle operations.

Driver and customer actions on an order after dispatch has offered it:
accepting, declining, progressing through delivery and cancelling. All state
changes go through the conditional updates in ``guards``; a lost guard means
someone else got there first and is reported as OrderNotAvailableError, never
as a crash.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any

from django.db import transaction
from django.utils import timezone

from drivers.models import DriverProfile
from orders.models import Order, OrderRejection
from orders.signals import order_rejected
from . import guards
from .exceptions import (
    OrderNotFoundError,
    OrderNotAvailableError,
    InvalidTransitionError,
    DriverNotEligibleError,
)

logger = logging.getLogger(__name__)


@dataclass
class OrderResult:
    """Result object for order operations."""
    success: bool
    order: Optional[Order] = None
    message: str = ""
    error_code: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None


# status -> (previous status, timestamp column)
_PROGRESSION = {
    Order.STATUS_PICKED_UP: (Order.STATUS_ACCEPTED, "picked_up_at"),
    Order.STATUS_IN_TRANSIT: (Order.STATUS_PICKED_UP, None),
    Order.STATUS_DELIVERED: (Order.STATUS_IN_TRANSIT, "delivered_at"),
}


def _get_order(order_id: int) -> Order:
    try:
        return Order.objects.get(pk=order_id)
    except Order.DoesNotExist:
        raise OrderNotFoundError("Order not found")


def _require_eligible_driver(driver) -> DriverProfile:
    try:
        profile = driver.driver_profile
    except DriverProfile.DoesNotExist:
        raise DriverNotEligibleError("Driver profile not found")

    if not profile.is_dispatchable:
        raise DriverNotEligibleError("Your driver account is not approved to take orders")
    return profile


def record_rejection(order_id: int, driver_id: int) -> bool:
    """Append a rejection row; returns True if it is new."""
    _, created = OrderRejection.objects.get_or_create(order_id=order_id, driver_id=driver_id)
    return created


# ===================== Driver Operations =====================

@transaction.atomic
def accept_order(driver, order_id: int) -> OrderResult:
    """
    Accept an order that was offered or assigned to this driver.

    Args:
        driver: User model instance (driver)
        order_id: ID of the order to accept

    Returns:
        OrderResult with the accepted order

    Raises:
        OrderNotAvailableError: if another driver got it first or it was cancelled
    """
    _require_eligible_driver(driver)
    order = _get_order(order_id)

    if order.status == Order.STATUS_ASSIGNED and order.driver_id == driver.id:
        won = guards.confirm_assignment(order.id, driver.id)
    elif order.status in Order.CLAIMABLE_STATUSES and order.driver_id is None:
        if OrderRejection.objects.filter(order_id=order.id, driver_id=driver.id).exists():
            raise OrderNotAvailableError("You already declined this order")
        won = guards.claim_order(order.id, driver.id, from_status=order.status)
    else:
        won = False

    if not won:
        logger.info("Driver %s lost acceptance of order %s", driver.id, order.id)
        raise OrderNotAvailableError("This order was already taken or cancelled")

    order.refresh_from_db()
    logger.info("Order %s accepted by driver %s", order.id, driver.id)

    return OrderResult(
        success=True,
        order=order,
        message="Order accepted! Navigate to the pickup location."
    )


@transaction.atomic
def reject_order(driver, order_id: int) -> OrderResult:
    """
    Decline an order offered or assigned to this driver.

    The rejection is recorded before the event is emitted, so the
    re-dispatch it triggers always excludes this driver.
    """
    order = _get_order(order_id)

    if order.status not in (Order.STATUS_PENDING, Order.STATUS_ASSIGNED, Order.STATUS_NO_DRIVERS):
        raise OrderNotAvailableError("This order was already handled or cancelled")
    if order.driver_id is not None and order.driver_id != driver.id:
        raise OrderNotAvailableError("This order is assigned to another driver")

    created = record_rejection(order.id, driver.id)

    if order.status == Order.STATUS_ASSIGNED:
        guards.release_assignment(order.id, driver.id)

    if created:
        order_rejected.send(sender=Order, order_id=order.id, driver_id=driver.id)

    order.refresh_from_db()
    logger.info("Order %s rejected by driver %s", order.id, driver.id)

    return OrderResult(
        success=True,
        order=order,
        message="Order declined. We will find another driver.",
        extra={"first_rejection": created},
    )


@transaction.atomic
def advance_order(driver, order_id: int, to_status: str) -> OrderResult:
    """
    Move an accepted order through pickup, transit and delivery.

    Raises:
        InvalidTransitionError: for an unknown target or out-of-order step
    """
    if to_status not in _PROGRESSION:
        raise InvalidTransitionError(f"Cannot move an order to {to_status}")

    order = _get_order(order_id)
    if order.driver_id != driver.id:
        raise OrderNotFoundError("Order not found or not assigned to you")

    expected, timestamp_field = _PROGRESSION[to_status]
    # Drivers may skip the in-transit step
    if to_status == Order.STATUS_DELIVERED and order.status == Order.STATUS_PICKED_UP:
        expected = Order.STATUS_PICKED_UP

    if order.status != expected:
        raise InvalidTransitionError(f"Order is {order.status}, expected {expected}")

    fields = {timestamp_field: timezone.now()} if timestamp_field else {}
    if not guards.advance(order.id, driver.id, expected, to_status, **fields):
        raise OrderNotAvailableError("Order status changed, please refresh")

    order.refresh_from_db()
    return OrderResult(success=True, order=order, message=f"Order marked {to_status.replace('_', ' ')}")


# ===================== Customer / Operator Operations =====================

@transaction.atomic
def cancel_order(user, order_id: int, reason: str = "No reason provided") -> OrderResult:
    """
    Cancel an order before pickup.

    Customers may cancel their own orders; operators may cancel any.
    """
    order = _get_order(order_id)
    is_operator = getattr(user, "is_operator", False)
    if order.customer_id != user.id and not is_operator:
        raise OrderNotFoundError("Order not found")

    if order.status not in Order.CANCELLABLE_STATUSES:
        raise OrderNotAvailableError(f"Cannot cancel - order is already {order.status}")

    had_driver = order.driver_id is not None
    if not guards.cancel(order.id, order.status, order.driver_id, reason):
        raise OrderNotAvailableError("Order status changed, please refresh")

    order.refresh_from_db()
    return OrderResult(
        success=True,
        order=order,
        message="Order cancelled successfully",
        extra={"was_assigned": had_driver},
    )


@transaction.atomic
def reopen_order(order_id: int) -> OrderResult:
    """Put a cancelled or held order back into dispatch."""
    order = _get_order(order_id)
    if order.status not in (Order.STATUS_CANCELLED, Order.STATUS_NO_DRIVERS):
        raise InvalidTransitionError(f"Cannot reopen an order that is {order.status}")

    if not guards.reopen_order(order.id, order.status):
        raise OrderNotAvailableError("Order status changed, please refresh")

    order.refresh_from_db()
    return OrderResult(success=True, order=order, message="Order reopened for dispatch")


def get_current_driver_order(driver) -> Optional[Order]:
    """Get driver's current active order."""
    return Order.objects.filter(
        driver=driver,
        status__in=Order.OPEN_DRIVER_STATUSES,
    ).select_related('customer').first()
