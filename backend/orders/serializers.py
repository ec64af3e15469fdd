from rest_framework import serializers

from accounts.serializers import UserSerializer
from .models import Order, QueueEntry


class OrderSerializer(serializers.ModelSerializer):
    """Serializer for orders as seen by customers, drivers and operators"""
    customer = UserSerializer(read_only=True)
    driver = UserSerializer(read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'customer', 'driver', 'status', 'total',
            'pickup_address', 'pickup_latitude', 'pickup_longitude',
            'delivery_address', 'delivery_latitude', 'delivery_longitude',
            'created_at', 'assigned_at', 'accepted_at', 'picked_up_at',
            'delivered_at', 'cancelled_at', 'cancellation_reason',
            'dispatch_attempts', 'last_dispatch_outcome',
        ]
        read_only_fields = fields


class OrderCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True)


class QueueEntrySerializer(serializers.ModelSerializer):
    order_id = serializers.IntegerField(read_only=True)
    pickup_address = serializers.CharField(source='order.pickup_address', read_only=True)
    total = serializers.DecimalField(source='order.total', max_digits=10, decimal_places=2, read_only=True)
    order_status = serializers.CharField(source='order.status', read_only=True)

    class Meta:
        model = QueueEntry
        fields = ['order_id', 'status', 'enqueued_at', 'pickup_address', 'total', 'order_status']
