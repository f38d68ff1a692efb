# payments/apps.py

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments & Webhooks"

    inbox_queue = None

    def ready(self):
        from payments.services.queue import build_inbox_queue

        self.inbox_queue = build_inbox_queue()
