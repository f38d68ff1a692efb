# notifications/apps.py

"""
NOTIFICATIONS APP CONFIG

Best-effort downstream side effects (in-app notification rows + the
outbound messenger collaborator). Nothing here may roll back a settlement.
"""

from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "notifications"
    verbose_name = "Notifications"
