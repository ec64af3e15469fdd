from django.contrib import admin
from drivers.models import DriverProfile


@admin.register(DriverProfile)
class DriverProfileAdmin(admin.ModelAdmin):
    """Admin panel for managing Driver Profiles"""

    list_display = [
        "user",
        "status",
        "is_online",
        "is_approved",
        "onboarding_completed",
        "rating",
        "last_location_update",
    ]

    list_filter = [
        "status",
        "is_online",
        "is_approved",
        "onboarding_completed",
    ]

    search_fields = [
        "user__username",
        "user__phone_number",
    ]

    readonly_fields = [
        "status",
        "last_location_update",
    ]

    ordering = ("user__username",)
