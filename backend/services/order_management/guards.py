"""
Conditional order updates.

Every change to an order's status or driver goes through
``guarded_transition``: a single ``UPDATE ... WHERE`` that only matches the
row if it is still in the expected state. The matched row count tells the
caller whether it won; nothing here reads the row first and writes later.
"""

import logging
from typing import Optional

from django.utils import timezone

from orders.models import Order
from orders.signals import order_status_changed

logger = logging.getLogger(__name__)

ANY = object()
KEEP = object()


def guarded_transition(
    order_id: int,
    from_status: str,
    to_status: str,
    *,
    current_driver_id=ANY,
    new_driver_id=KEEP,
    emit: bool = True,
    **fields,
) -> bool:
    """
    Move an order from ``from_status`` to ``to_status`` if nothing else got there first.

    Args:
        order_id: Order to update
        from_status: Status the row must currently have
        to_status: Status to write
        current_driver_id: Driver the row must currently have (None = unassigned, ANY = don't care)
        new_driver_id: Driver to write (KEEP = leave as is)
        emit: Send order_status_changed on success
        **fields: Extra columns to write (timestamps, reasons)

    Returns:
        True if this call performed the transition
    """
    qs = Order.objects.filter(pk=order_id, status=from_status)
    if current_driver_id is None:
        qs = qs.filter(driver__isnull=True)
    elif current_driver_id is not ANY:
        qs = qs.filter(driver_id=current_driver_id)

    updates = {"status": to_status, "updated_at": timezone.now(), **fields}
    if new_driver_id is not KEEP:
        updates["driver_id"] = new_driver_id

    matched = qs.update(**updates)
    if not matched:
        logger.debug("Guard missed for order %s (%s -> %s)", order_id, from_status, to_status)
        return False

    if emit:
        if new_driver_id is not KEEP and new_driver_id is not None:
            driver_id = new_driver_id
        elif current_driver_id is not ANY:
            driver_id = current_driver_id
        else:
            driver_id = None
        order_status_changed.send(
            sender=Order,
            order_id=order_id,
            from_status=from_status,
            to_status=to_status,
            driver_id=driver_id,
        )
    return True


# ---------------------- Named transitions ----------------------

def assign_if_pending(order_id: int, driver_id: int) -> bool:
    """Auto-assign: pending and unassigned -> assigned to ``driver_id``."""
    return guarded_transition(
        order_id, Order.STATUS_PENDING, Order.STATUS_ASSIGNED,
        current_driver_id=None,
        new_driver_id=driver_id,
        assigned_at=timezone.now(),
    )


def claim_order(order_id: int, driver_id: int, from_status: str) -> bool:
    """Broadcast acceptance: first driver to claim an unassigned order wins."""
    now = timezone.now()
    return guarded_transition(
        order_id, from_status, Order.STATUS_ACCEPTED,
        current_driver_id=None,
        new_driver_id=driver_id,
        assigned_at=now,
        accepted_at=now,
    )


def confirm_assignment(order_id: int, driver_id: int) -> bool:
    """The auto-assigned driver confirms."""
    return guarded_transition(
        order_id, Order.STATUS_ASSIGNED, Order.STATUS_ACCEPTED,
        current_driver_id=driver_id,
        accepted_at=timezone.now(),
    )


def release_assignment(order_id: int, driver_id: int) -> bool:
    """Hand an assigned order back to the pool after its driver declined."""
    # Re-dispatch is driven by the rejection event, not by this status change
    return guarded_transition(
        order_id, Order.STATUS_ASSIGNED, Order.STATUS_PENDING,
        current_driver_id=driver_id,
        new_driver_id=None,
        emit=False,
        assigned_at=None,
    )


def mark_no_drivers(order_id: int) -> bool:
    return guarded_transition(
        order_id, Order.STATUS_PENDING, Order.STATUS_NO_DRIVERS,
        current_driver_id=None,
    )


def reopen_order(order_id: int, from_status: str) -> bool:
    """Put a held or cancelled order back to pending, which re-triggers dispatch."""
    return guarded_transition(
        order_id, from_status, Order.STATUS_PENDING,
        new_driver_id=None,
        assigned_at=None,
        accepted_at=None,
        cancelled_at=None,
        cancellation_reason=None,
    )


def cancel(order_id: int, from_status: str, current_driver_id: Optional[int], reason: str) -> bool:
    return guarded_transition(
        order_id, from_status, Order.STATUS_CANCELLED,
        current_driver_id=current_driver_id,
        new_driver_id=None,
        cancelled_at=timezone.now(),
        cancellation_reason=reason,
    )


def advance(order_id: int, driver_id: int, from_status: str, to_status: str, **fields) -> bool:
    return guarded_transition(
        order_id, from_status, to_status,
        current_driver_id=driver_id,
        **fields,
    )
