from django.db import models
from django.utils import timezone
from django.conf import settings

User = settings.AUTH_USER_MODEL


class DriverProfile(models.Model):
    """
    Driver availability, approval and live location.

    Onboarding fields (is_approved, onboarding_completed) and presence fields
    (is_online, coordinates) are maintained by the driver apps. The dispatch
    engine only writes ``status``.
    """
    STATUS_CHOICES = [
        ('available', 'Available'),
        ('busy', 'Busy'),
    ]

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='driver_profile')

    # Onboarding state (read-only for dispatch)
    is_active = models.BooleanField(default=True)
    is_approved = models.BooleanField(default=False)
    onboarding_completed = models.BooleanField(default=False)

    # Presence & location
    is_online = models.BooleanField(default=False)
    current_latitude = models.DecimalField(max_digits=10, decimal_places=6, null=True, blank=True)
    current_longitude = models.DecimalField(max_digits=10, decimal_places=6, null=True, blank=True)
    last_location_update = models.DateTimeField(default=timezone.now)

    # Average customer rating (1-5), null until the first rating lands
    rating = models.DecimalField(max_digits=3, decimal_places=2, null=True, blank=True)

    # Engine-owned
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='available')

    class Meta:
        db_table = 'driver_profiles'
        indexes = [
            models.Index(fields=['is_online', 'is_approved'], name='driver_online_approved_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} ({'online' if self.is_online else 'offline'})"

    @property
    def is_dispatchable(self) -> bool:
        return self.is_active and self.is_approved and self.onboarding_completed
