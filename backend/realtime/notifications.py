"""
Notification helpers for pushing dispatch events to users and operators.

This module provides:
- NotificationGateway: records a delivery attempt and pushes it to the
  user's personal channel group (user_<id>)
- OperatorAlertChannel: escalations for the operations team
- Message builders for the driver/customer notices the engine sends

Delivery is fire-and-forget: failures are logged and reported as False,
never raised into the dispatch flow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.mail import mail_admins

from .models import NotificationRecord, OperatorAlert

logger = logging.getLogger(__name__)

OPERATORS_GROUP = "operators"


@dataclass(frozen=True)
class Notice:
    title: str
    body: str
    metadata: Dict[str, Any] = field(default_factory=dict)


def user_group(user_id: int) -> str:
    return f"user_{user_id}"


# ---------------------- Gateway ----------------------

class NotificationGateway:
    """Push notifications through the channel layer, with one history row per notice."""

    def notify(self, user_id: Optional[int], notice: Notice, attempts: int = 1) -> bool:
        """
        Send ``notice`` to one user.

        Args:
            user_id: Target user's ID
            notice: Title, body and metadata to deliver
            attempts: How many times to try the push; the history row is written once

        Returns:
            True if the push was handed to the channel layer, False otherwise
        """
        if not user_id:
            return False

        try:
            record = NotificationRecord.objects.create(
                user_id=user_id,
                title=notice.title,
                body=notice.body,
                metadata=notice.metadata,
            )
        except Exception:
            logger.exception("Failed to record notification for user %s", user_id)
            return False

        channel_layer = get_channel_layer()
        if channel_layer is None:
            logger.warning("No channel layer available, notification %s not pushed", record.id)
            return False

        payload = {
            "type": "notification",
            "notification_id": record.id,
            "title": notice.title,
            "body": notice.body,
            "metadata": notice.metadata,
        }

        for attempt in range(1, max(1, attempts) + 1):
            try:
                logger.debug("WS -> user_%s: %s", user_id, payload)
                async_to_sync(channel_layer.group_send)(user_group(user_id), payload)
            except Exception:
                logger.exception(
                    "Failed to push notification %s to user %s (attempt %d)", record.id, user_id, attempt
                )
                continue
            NotificationRecord.objects.filter(pk=record.pk).update(delivered=True)
            return True

        return False


class OperatorAlertChannel:
    """Raise alerts that need a human."""

    def alert(self, title: str, message: str, metadata: Optional[Dict[str, Any]] = None) -> OperatorAlert:
        metadata = metadata or {}
        logger.warning("OPERATOR ALERT: %s - %s %s", title, message, metadata)

        alert = OperatorAlert.objects.create(title=title, message=message, metadata=metadata)

        channel_layer = get_channel_layer()
        if channel_layer is not None:
            try:
                async_to_sync(channel_layer.group_send)(
                    OPERATORS_GROUP,
                    {
                        "type": "operator_alert",
                        "alert_id": alert.id,
                        "title": title,
                        "message": message,
                        "metadata": metadata,
                    },
                )
            except Exception:
                logger.exception("Failed to push operator alert %s", alert.id)

        mail_admins(title, message, fail_silently=True)
        return alert


# ---------------------- Message builders ----------------------

def driver_order_notice(order, kind: str, extra: Optional[Dict[str, Any]] = None) -> Notice:
    """
    Notice for a driver about an order.

    Args:
        order: Order instance
        kind: "assigned", "available", "urgent", "queued" or "cancelled"
        extra: Additional metadata keys
    """
    total = f"${order.total}"
    metadata = {
        "order_id": order.id,
        "type": kind,
        "total": str(order.total),
        "pickup_address": order.pickup_address,
        "delivery_address": order.delivery_address,
        **(extra or {}),
    }

    if kind == "assigned":
        return Notice(
            title="Order Assigned!",
            body=f"You've been assigned order #{order.short_id} - {total}",
            metadata=metadata,
        )
    if kind == "urgent":
        return Notice(
            title="URGENT: Order Needs a Driver",
            body=f"{total} - {order.pickup_address} to {order.delivery_address}",
            metadata=metadata,
        )
    if kind == "queued":
        return Notice(
            title="Queued Order Available!",
            body=f"Order #{order.short_id} has been waiting for a driver. Pickup: {order.pickup_address}",
            metadata=metadata,
        )
    if kind == "cancelled":
        return Notice(
            title="Order Cancelled",
            body=f"Order #{order.short_id} was cancelled.",
            metadata=metadata,
        )
    return Notice(
        title="New Order Available!",
        body=f"Order #{order.short_id} available - {total}",
        metadata=metadata,
    )


_CUSTOMER_MESSAGES = {
    "assigned": ("Driver Assigned", "Your order #{id} has been assigned to a driver!"),
    "accepted": ("Driver Accepted!", "A driver has accepted order #{id} and is preparing to pick it up."),
    "picked_up": ("Order Picked Up", "Your order #{id} has been picked up and is on the way to you."),
    "in_transit": ("Order In Transit", "Your driver is en route with order #{id}."),
    "delivered": ("Order Delivered", "Your order #{id} has been delivered successfully."),
    "rejected": ("Finding Another Driver", "A driver declined order #{id}. We are finding a new driver now."),
    "cancelled": ("Order Cancelled", "Order #{id} has been cancelled. Please contact support if you have questions."),
}


def customer_order_notice(order, status: str) -> Notice:
    """Notice for the customer about a status change on their order."""
    title, body = _CUSTOMER_MESSAGES.get(
        status, ("Order Update", "Your order #{id} status has been updated to " + status + ".")
    )
    return Notice(
        title=title,
        body=body.format(id=order.short_id),
        metadata={
            "order_id": order.id,
            "status": status,
            "type": "status_update",
            "driver_id": order.driver_id,
            "total": str(order.total),
        },
    )
