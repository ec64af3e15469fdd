import logging

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from services import order_management
from services.dispatch.engine import get_engine
from services.order_management import (
    DriverNotEligibleError,
    InvalidTransitionError,
    OrderNotAvailableError,
    OrderNotFoundError,
)
from .models import Order
from .permissions import IsDriver, IsOperator
from .serializers import OrderCancelSerializer, OrderSerializer, QueueEntrySerializer

logger = logging.getLogger(__name__)


def error_response(exc):
    """Map an order-management error to an HTTP response."""
    if isinstance(exc, OrderNotFoundError):
        return Response({'success': False, 'error': 'order_not_found', 'message': str(exc)},
                        status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, OrderNotAvailableError):
        return Response({'success': False, 'error': 'order_not_available', 'message': str(exc)},
                        status=status.HTTP_409_CONFLICT)
    if isinstance(exc, DriverNotEligibleError):
        return Response({'success': False, 'error': 'driver_not_eligible', 'message': str(exc)},
                        status=status.HTTP_403_FORBIDDEN)
    return Response({'success': False, 'error': 'invalid_transition', 'message': str(exc)},
                    status=status.HTTP_400_BAD_REQUEST)


_ORDER_ERRORS = (OrderNotFoundError, OrderNotAvailableError, DriverNotEligibleError, InvalidTransitionError)


def result_response(result, **extra):
    return Response({
        'success': result.success,
        'message': result.message,
        'order': OrderSerializer(result.order).data,
        **(result.extra or {}),
        **extra,
    })


# ==================== Driver Order APIs ====================

class DriverAcceptOrderView(APIView):
    """POST: accept an order that was offered or assigned to this driver."""
    permission_classes = [IsAuthenticated, IsDriver]

    def post(self, request, order_id: int):
        try:
            result = order_management.accept_order(request.user, order_id)
        except _ORDER_ERRORS as exc:
            return error_response(exc)
        return result_response(result)


class DriverRejectOrderView(APIView):
    """POST: decline an order; dispatch moves on to another driver."""
    permission_classes = [IsAuthenticated, IsDriver]

    def post(self, request, order_id: int):
        try:
            result = order_management.reject_order(request.user, order_id)
        except _ORDER_ERRORS as exc:
            return error_response(exc)
        return result_response(result)


class DriverAdvanceOrderView(APIView):
    """POST: pickup / in-transit / deliver, chosen by the URL."""
    permission_classes = [IsAuthenticated, IsDriver]
    to_status = None

    def post(self, request, order_id: int):
        try:
            result = order_management.advance_order(request.user, order_id, self.to_status)
        except _ORDER_ERRORS as exc:
            return error_response(exc)
        return result_response(result)


class DriverCurrentOrderView(APIView):
    permission_classes = [IsAuthenticated, IsDriver]

    def get(self, request):
        order = order_management.get_current_driver_order(request.user)
        if not order:
            return Response({'has_active_order': False, 'message': 'No active order'})
        return Response({'has_active_order': True, 'order': OrderSerializer(order).data})


# ==================== Customer Order APIs ====================

class CancelOrderView(APIView):
    """POST: customer cancels their own order (operators may cancel any)."""
    permission_classes = [IsAuthenticated]

    def post(self, request, order_id: int):
        serializer = OrderCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reason = serializer.validated_data.get('reason') or 'No reason provided'

        try:
            result = order_management.cancel_order(request.user, order_id, reason)
        except _ORDER_ERRORS as exc:
            return error_response(exc)
        return result_response(result)


# ==================== Operator APIs ====================

class OperatorDispatchOrderView(APIView):
    """
    POST: run dispatch for an order now.

    Pending orders are dispatched synchronously and the outcome returned.
    Held orders are reopened, which schedules a fresh dispatch.
    """
    permission_classes = [IsAuthenticated, IsOperator]

    def post(self, request, order_id: int):
        order = Order.objects.filter(pk=order_id).first()
        if order is None:
            return error_response(OrderNotFoundError("Order not found"))

        if order.status == Order.STATUS_PENDING:
            result = get_engine().orchestrator.dispatch(order.id)
            logger.info("Operator %s dispatched order %s: %s", request.user.id, order.id, result.outcome.value)
            return Response({
                'success': True,
                'order_id': order.id,
                'outcome': result.outcome.value,
                'driver_id': result.driver_id,
                'notified_driver_ids': result.notified_driver_ids,
                'reason': result.reason,
            })

        if order.status in (Order.STATUS_NO_DRIVERS, Order.STATUS_CANCELLED):
            try:
                result = order_management.reopen_order(order.id)
            except _ORDER_ERRORS as exc:
                return error_response(exc)
            return result_response(result, outcome='reopened')

        return error_response(OrderNotAvailableError(f"Order is already {order.status}"))


class QueueListView(APIView):
    permission_classes = [IsAuthenticated, IsOperator]

    def get(self, request):
        queue = get_engine().queue
        if not queue.is_available:
            return Response({'available': False, 'count': 0, 'entries': []})

        entries = queue.list_waiting()
        return Response({
            'available': True,
            'count': len(entries),
            'entries': QueueEntrySerializer(entries, many=True).data,
        })


class QueueStatsView(APIView):
    permission_classes = [IsAuthenticated, IsOperator]

    def get(self, request):
        return Response(get_engine().queue.stats())
