# inventory/models/stock_movement.py

"""
INVENTORY AUDIT LEDGER

Immutable record of every change to a StockItem's quantity or reserved count.

GUARANTEES:
- Append-only (no updates, no deletes)
- previous_qty / new_qty capture the affected figure before and after
  (available for reservation/release, on-hand quantity for sale/adjustment)
- quantity_delta sign matches the direction of new_qty - previous_qty
"""

from django.core.exceptions import ValidationError
from django.db import models


class StockMovement(models.Model):
    class MovementType(models.TextChoices):
        RESERVATION = "reservation", "Reservation"
        RELEASE = "release", "Reservation release"
        SALE = "sale", "Sale (reservation consumed)"
        ADJUSTMENT = "adjustment", "Manual adjustment"
        RESTOCK = "restock", "Restock"

    stock_item = models.ForeignKey(
        "inventory.StockItem",
        on_delete=models.CASCADE,
        related_name="movements",
    )

    movement_type = models.CharField(max_length=16, choices=MovementType.choices)

    quantity_delta = models.IntegerField()
    previous_qty = models.IntegerField()
    new_qty = models.IntegerField()

    reason = models.CharField(max_length=255, blank=True, default="")
    reference_type = models.CharField(max_length=32, blank=True, default="")
    reference_id = models.CharField(max_length=64, blank=True, default="")

    created_by = models.CharField(max_length=150, blank=True, default="system")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["stock_item", "created_at"], name="stockmove_item_created_idx"),
            models.Index(fields=["reference_type", "reference_id"], name="stockmove_reference_idx"),
            models.Index(fields=["movement_type"], name="stockmove_type_idx"),
        ]

    def clean(self):
        if self.quantity_delta == 0:
            raise ValidationError("quantity_delta cannot be zero")

        if self.new_qty - self.previous_qty != self.quantity_delta:
            raise ValidationError("new_qty - previous_qty must equal quantity_delta")

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("StockMovement records are immutable")

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("StockMovement records are immutable and cannot be deleted")

    def __str__(self):
        return f"{self.stock_item_id} | {self.movement_type} | {self.quantity_delta:+d}"
