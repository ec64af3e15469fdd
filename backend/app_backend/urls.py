from django.contrib import admin
from django.urls import path, include

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check), # Health check endpoint

    # Authentication endpoints (at /api/auth/)
    path('api/auth/', include('accounts.urls')),

    # Driver APIs (profile, online status, location)
    path('api/driver/', include('drivers.urls')),

    # Order actions for drivers, customers and operators
    path('api/orders/', include('orders.urls')),
]
