# notifications/admin.py

from django.contrib import admin

from notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("created_at", "workspace", "kind", "title", "read_at")
    list_filter = ("kind", "workspace")
    search_fields = ("title", "entity_id")
    readonly_fields = ("created_at",)
