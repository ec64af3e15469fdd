from django.db import models
from django.conf import settings


class NotificationRecord(models.Model):
    """One push attempt to a user, kept for a week of history."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    title = models.CharField(max_length=200)
    body = models.TextField()
    metadata = models.JSONField(default=dict, blank=True)
    delivered = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = 'notification_history'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} -> {self.user_id}"


class OperatorAlert(models.Model):
    """Escalation raised for the operations team."""

    title = models.CharField(max_length=200)
    message = models.TextField()
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'operator_alerts'
        ordering = ['-created_at']

    def __str__(self):
        return self.title
