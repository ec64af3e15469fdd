from django.contrib import admin

from orders.models import Order, OrderRejection, QueueEntry


class OrderRejectionInline(admin.TabularInline):
    model = OrderRejection
    extra = 0
    readonly_fields = ["driver", "created_at"]
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Admin panel for orders and their dispatch history"""

    list_display = [
        "id",
        "customer",
        "driver",
        "status",
        "total",
        "dispatch_attempts",
        "last_dispatch_outcome",
        "created_at",
    ]

    list_filter = [
        "status",
        "last_dispatch_outcome",
        "created_at",
    ]

    search_fields = [
        "id",
        "customer__username",
        "driver__username",
        "pickup_address",
        "delivery_address",
    ]

    readonly_fields = [
        "created_at",
        "updated_at",
        "assigned_at",
        "accepted_at",
        "picked_up_at",
        "delivered_at",
        "cancelled_at",
        "dispatch_attempts",
        "last_dispatched_at",
        "last_dispatch_outcome",
    ]

    inlines = [OrderRejectionInline]


@admin.register(QueueEntry)
class QueueEntryAdmin(admin.ModelAdmin):
    list_display = ["order", "status", "enqueued_at", "updated_at"]
    list_filter = ["status"]
    ordering = ("enqueued_at",)
