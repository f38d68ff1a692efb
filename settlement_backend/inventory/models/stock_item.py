# inventory/models/stock_item.py

"""
STOCK ITEM (one row per product / variant)

    available = quantity - reserved

Invariants (service-enforced, DB-backstopped):
- reserved >= 0
- reserved <= quantity   (equivalently: available >= 0)

quantity and reserved are only written by inventory.services.*, always under
select_for_update and always alongside a StockMovement row.
"""

from django.db import models
from django.db.models import F, Q


class StockItem(models.Model):
    product = models.ForeignKey(
        "inventory.Product",
        on_delete=models.CASCADE,
        related_name="stock_items",
    )
    variant = models.ForeignKey(
        "inventory.ProductVariant",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="stock_items",
    )

    quantity = models.PositiveIntegerField(default=0)
    reserved = models.PositiveIntegerField(default=0)

    low_threshold = models.PositiveIntegerField(default=10)
    location = models.CharField(max_length=120, blank=True, default="")

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "variant"],
                condition=Q(variant__isnull=False),
                name="uniq_stock_item_product_variant",
            ),
            models.UniqueConstraint(
                fields=["product"],
                condition=Q(variant__isnull=True),
                name="uniq_stock_item_product_no_variant",
            ),
            models.CheckConstraint(
                condition=Q(reserved__lte=F("quantity")),
                name="stock_reserved_within_quantity",
            ),
        ]

    @property
    def available(self) -> int:
        return int(self.quantity or 0) - int(self.reserved or 0)

    @property
    def is_low(self) -> bool:
        return self.available <= int(self.low_threshold or 0)

    def __str__(self):
        label = self.variant.name if self.variant_id else "default"
        return f"{self.product_id}/{label} qty={self.quantity} reserved={self.reserved}"
