# inventory/models/product.py

import uuid

from django.db import models


class Product(models.Model):
    """
    Sellable product.

    STOCK MODEL (IMPORTANT):
    - Product itself does NOT store stock
    - Stock lives in StockItem (one row per product / variant)
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    workspace = models.ForeignKey(
        "workspaces.Workspace",
        on_delete=models.PROTECT,
        related_name="products",
    )

    sku = models.CharField(max_length=128, db_index=True)
    name = models.CharField(max_length=255, db_index=True)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["workspace", "sku"],
                name="uniq_product_sku_per_workspace",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.sku})"


class ProductVariant(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name="variants",
    )

    name = models.CharField(max_length=120)
    sku = models.CharField(max_length=128, blank=True, default="")

    # None -> inherit product.unit_price
    unit_price = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True
    )

    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]

    @property
    def effective_price(self):
        if self.unit_price is not None:
            return self.unit_price
        return self.product.unit_price

    def __str__(self):
        return f"{self.product.name} / {self.name}"
