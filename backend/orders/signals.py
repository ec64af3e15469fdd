"""
Order change feed.

Turns writes to the orders table into change payloads for the dispatch
listener. Ordinary saves arrive through ``post_save``; conditional updates
done with ``QuerySet.update()`` never fire ``post_save``, so the guards send
``order_status_changed`` / ``order_rejected`` themselves.
"""

import logging

from django.apps import apps
from django.db.models.signals import post_save, pre_save
from django.dispatch import Signal, receiver

from .models import Order

logger = logging.getLogger(__name__)

# kwargs: order_id, from_status, to_status, driver_id
order_status_changed = Signal()

# kwargs: order_id, driver_id
order_rejected = Signal()


def _forward(payload):
    engine = getattr(apps.get_app_config("orders"), "engine", None)
    if engine is None:
        logger.debug("Dispatch engine not ready, dropping change %r", payload)
        return
    engine.listener.handle_payload(payload)


@receiver(pre_save, sender=Order, dispatch_uid="orders.capture_previous_status")
def capture_previous_status(sender, instance, raw=False, **kwargs):
    if raw or instance.pk is None:
        instance._previous_status = None
        return
    instance._previous_status = (
        Order.objects.filter(pk=instance.pk).values_list("status", flat=True).first()
    )


@receiver(post_save, sender=Order, dispatch_uid="orders.order_saved")
def order_saved(sender, instance, created, raw=False, **kwargs):
    if raw:
        return

    if created:
        _forward({"type": "insert", "order_id": instance.pk})
        return

    previous = getattr(instance, "_previous_status", None)
    if previous and previous != instance.status:
        _forward({
            "type": "status_changed",
            "order_id": instance.pk,
            "from": previous,
            "to": instance.status,
            "driver_id": instance.driver_id,
        })


@receiver(order_status_changed, dispatch_uid="orders.guarded_status_change")
def guarded_status_change(sender, order_id, from_status, to_status, driver_id=None, **kwargs):
    _forward({
        "type": "status_changed",
        "order_id": order_id,
        "from": from_status,
        "to": to_status,
        "driver_id": driver_id,
    })


@receiver(order_rejected, dispatch_uid="orders.rejection_recorded")
def rejection_recorded(sender, order_id, driver_id, **kwargs):
    _forward({"type": "rejected", "order_id": order_id, "driver_id": driver_id})
