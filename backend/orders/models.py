from django.db import models
from django.conf import settings


class Order(models.Model):
    """A delivery order moving through dispatch and fulfilment."""

    STATUS_PENDING = 'pending'
    STATUS_ASSIGNED = 'assigned'
    STATUS_NO_DRIVERS = 'no_drivers_available'
    STATUS_ACCEPTED = 'accepted'
    STATUS_PICKED_UP = 'picked_up'
    STATUS_IN_TRANSIT = 'in_transit'
    STATUS_DELIVERED = 'delivered'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_ASSIGNED, 'Assigned'),
        (STATUS_NO_DRIVERS, 'No Drivers Available'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_PICKED_UP, 'Picked Up'),
        (STATUS_IN_TRANSIT, 'In Transit'),
        (STATUS_DELIVERED, 'Delivered'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    # driver is set iff status is one of these
    DRIVER_STATUSES = (
        STATUS_ASSIGNED,
        STATUS_ACCEPTED,
        STATUS_PICKED_UP,
        STATUS_IN_TRANSIT,
        STATUS_DELIVERED,
    )
    # counted against a driver's workload
    OPEN_DRIVER_STATUSES = (
        STATUS_ASSIGNED,
        STATUS_ACCEPTED,
        STATUS_PICKED_UP,
        STATUS_IN_TRANSIT,
    )
    # a driver may still claim the order
    CLAIMABLE_STATUSES = (STATUS_PENDING, STATUS_NO_DRIVERS)
    CANCELLABLE_STATUSES = (
        STATUS_PENDING,
        STATUS_ASSIGNED,
        STATUS_NO_DRIVERS,
        STATUS_ACCEPTED,
    )

    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='orders'
    )

    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_orders'
    )

    # Addresses & coordinates
    pickup_address = models.TextField()
    pickup_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    pickup_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    delivery_address = models.TextField()
    delivery_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    delivery_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)

    total = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(max_length=24, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    assigned_at = models.DateTimeField(null=True, blank=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    picked_up_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    cancellation_reason = models.TextField(null=True, blank=True)

    # Dispatch bookkeeping (engine-owned)
    dispatch_attempts = models.PositiveIntegerField(default=0)
    last_dispatched_at = models.DateTimeField(null=True, blank=True)
    last_dispatch_outcome = models.CharField(max_length=24, blank=True)

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at']

    def __str__(self):
        return f"Order #{self.id} - {self.customer} - {self.status}"

    @property
    def has_pickup_coordinates(self) -> bool:
        return self.pickup_latitude is not None and self.pickup_longitude is not None

    @property
    def short_id(self) -> str:
        return str(self.id)[-8:]


class OrderRejection(models.Model):
    """A driver declined an order. Append-only."""

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='rejections')
    driver = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='order_rejections')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'order_rejections'
        constraints = [
            models.UniqueConstraint(
                fields=['order', 'driver'],
                name='unique_order_rejection'
            )
        ]

    def __str__(self):
        return f"Order {self.order_id} rejected by {self.driver_id}"


class QueueEntry(models.Model):
    """An order held while no driver is available."""

    STATUS_WAITING = 'waiting_for_driver'
    STATUS_ASSIGNED = 'assigned'

    order = models.OneToOneField(Order, on_delete=models.CASCADE, related_name='queue_entry')
    status = models.CharField(
        max_length=20,
        choices=[
            (STATUS_WAITING, 'Waiting for driver'),
            (STATUS_ASSIGNED, 'Assigned'),
        ],
        default=STATUS_WAITING,
        db_index=True,
    )
    enqueued_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'order_queue'
        ordering = ['enqueued_at']

    def __str__(self):
        return f"Queue entry for order {self.order_id} ({self.status})"
