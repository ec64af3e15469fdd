from django.contrib import admin

from realtime.models import NotificationRecord, OperatorAlert


@admin.register(NotificationRecord)
class NotificationRecordAdmin(admin.ModelAdmin):
    list_display = ["user", "title", "delivered", "created_at"]
    list_filter = ["delivered", "created_at"]
    search_fields = ["user__username", "title"]


@admin.register(OperatorAlert)
class OperatorAlertAdmin(admin.ModelAdmin):
    list_display = ["title", "message", "created_at"]
    list_filter = ["created_at"]
    search_fields = ["title", "message"]
