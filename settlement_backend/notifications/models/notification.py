# notifications/models/notification.py

from django.db import models


class Notification(models.Model):
    KIND_LOW_STOCK = "low_stock"
    KIND_PAYMENT_RECEIVED = "payment_received"
    KIND_ORDER_PAID = "order_paid"
    KIND_RECEIPT_UPLOADED = "receipt_uploaded"
    KIND_WEBHOOK_FAILED = "webhook_failed"

    KIND_CHOICES = [
        (KIND_LOW_STOCK, "Low stock"),
        (KIND_PAYMENT_RECEIVED, "Payment received"),
        (KIND_ORDER_PAID, "Order paid"),
        (KIND_RECEIPT_UPLOADED, "Receipt uploaded"),
        (KIND_WEBHOOK_FAILED, "Webhook failed"),
    ]

    workspace = models.ForeignKey(
        "workspaces.Workspace",
        on_delete=models.CASCADE,
        related_name="notifications",
    )

    kind = models.CharField(max_length=32, choices=KIND_CHOICES)
    title = models.CharField(max_length=255)
    message = models.TextField(blank=True, default="")

    entity_type = models.CharField(max_length=32, blank=True, default="")
    entity_id = models.CharField(max_length=64, blank=True, default="")
    metadata = models.JSONField(default=dict, blank=True)

    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["workspace", "read_at"], name="notif_ws_read_idx"),
            models.Index(fields=["kind"], name="notif_kind_idx"),
        ]

    def __str__(self):
        return f"[{self.kind}] {self.title}"
