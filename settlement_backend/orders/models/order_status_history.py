# orders/models/order_status_history.py

"""
Append-only status audit for orders.

source_reference records what caused a transition made by the system
(e.g. "Receipt:<uuid>" when a receipt settlement flipped the order to paid).
Receipt reversal uses it to decide whether it may revert the status.
"""

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone


class OrderStatusHistory(models.Model):
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )

    previous_status = models.CharField(max_length=32, blank=True, default="")
    new_status = models.CharField(max_length=32)
    reason = models.CharField(max_length=255, blank=True, default="")
    source_reference = models.CharField(max_length=128, blank=True, default="")
    changed_by = models.CharField(max_length=150, blank=True, default="system")

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["created_at", "id"]
        verbose_name_plural = "Order status history"
        indexes = [
            models.Index(fields=["order", "created_at"], name="orderhist_order_created_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("OrderStatusHistory records are immutable")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("OrderStatusHistory records are immutable and cannot be deleted")

    def __str__(self):
        return f"{self.order_id}: {self.previous_status or '-'} → {self.new_status}"
