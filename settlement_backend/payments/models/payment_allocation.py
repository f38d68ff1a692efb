# payments/models/payment_allocation.py

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models


class PaymentAllocation(models.Model):
    """
    Immutable leg of a Payment applied to one order.

    RULES:
    - Sum(amount) over a payment's allocations <= payment.amount
      (the remainder is standing customer credit).
    - Write-once: created by the settlement engine only.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="allocations",
    )
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="payment_allocations",
    )

    amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["payment"], name="allocation_payment_idx"),
            models.Index(fields=["order"], name="allocation_order_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("PaymentAllocation records are immutable")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("PaymentAllocation records are immutable and cannot be deleted")

    def __str__(self):
        return f"{self.payment_id} → {self.order_id} | {self.amount}"
