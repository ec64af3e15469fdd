from django.urls import path
from . import views
from .models import Order

app_name = 'orders'

urlpatterns = [
    # Driver order actions
    path('driver/current/', views.DriverCurrentOrderView.as_view(), name='driver-current-order'),
    path('driver/<int:order_id>/accept/', views.DriverAcceptOrderView.as_view(), name='accept-order'),
    path('driver/<int:order_id>/reject/', views.DriverRejectOrderView.as_view(), name='reject-order'),
    path('driver/<int:order_id>/pickup/',
         views.DriverAdvanceOrderView.as_view(to_status=Order.STATUS_PICKED_UP), name='pickup-order'),
    path('driver/<int:order_id>/in-transit/',
         views.DriverAdvanceOrderView.as_view(to_status=Order.STATUS_IN_TRANSIT), name='in-transit-order'),
    path('driver/<int:order_id>/deliver/',
         views.DriverAdvanceOrderView.as_view(to_status=Order.STATUS_DELIVERED), name='deliver-order'),

    # Customer
    path('<int:order_id>/cancel/', views.CancelOrderView.as_view(), name='cancel-order'),

    # Operators
    path('operator/<int:order_id>/dispatch/', views.OperatorDispatchOrderView.as_view(), name='dispatch-order'),
    path('operator/queue/', views.QueueListView.as_view(), name='queue-list'),
    path('operator/queue/stats/', views.QueueStatsView.as_view(), name='queue-stats'),
]
