"""
======================================================
PATH: inventory/migrations/0001_initial.py
======================================================
MIGRATION: CREATE Product, ProductVariant, StockItem, StockMovement

Purpose:
- Catalog and stock tables.
- StockReservation references orders and is created in 0002, after the
  orders tables exist (orders.OrderItem in turn references Product).
"""

from __future__ import annotations

import uuid

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("workspaces", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        primary_key=True,
                        default=uuid.uuid4,
                        editable=False,
                        serialize=False,
                    ),
                ),
                ("sku", models.CharField(max_length=128, db_index=True)),
                ("name", models.CharField(max_length=255, db_index=True)),
                ("unit_price", models.DecimalField(max_digits=12, decimal_places=2)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "workspace",
                    models.ForeignKey(
                        to="workspaces.workspace",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="products",
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="ProductVariant",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        primary_key=True,
                        default=uuid.uuid4,
                        editable=False,
                        serialize=False,
                    ),
                ),
                ("name", models.CharField(max_length=120)),
                ("sku", models.CharField(max_length=128, blank=True, default="")),
                (
                    "unit_price",
                    models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True),
                ),
                ("is_active", models.BooleanField(default=True)),
                (
                    "product",
                    models.ForeignKey(
                        to="inventory.product",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="variants",
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="StockItem",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("quantity", models.PositiveIntegerField(default=0)),
                ("reserved", models.PositiveIntegerField(default=0)),
                ("low_threshold", models.PositiveIntegerField(default=10)),
                ("location", models.CharField(max_length=120, blank=True, default="")),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "product",
                    models.ForeignKey(
                        to="inventory.product",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="stock_items",
                    ),
                ),
                (
                    "variant",
                    models.ForeignKey(
                        to="inventory.productvariant",
                        on_delete=django.db.models.deletion.CASCADE,
                        null=True,
                        blank=True,
                        related_name="stock_items",
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
            },
        ),
        migrations.CreateModel(
            name="StockMovement",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "movement_type",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("reservation", "Reservation"),
                            ("release", "Reservation release"),
                            ("sale", "Sale (reservation consumed)"),
                            ("adjustment", "Manual adjustment"),
                            ("restock", "Restock"),
                        ],
                    ),
                ),
                ("quantity_delta", models.IntegerField()),
                ("previous_qty", models.IntegerField()),
                ("new_qty", models.IntegerField()),
                ("reason", models.CharField(max_length=255, blank=True, default="")),
                ("reference_type", models.CharField(max_length=32, blank=True, default="")),
                ("reference_id", models.CharField(max_length=64, blank=True, default="")),
                ("created_by", models.CharField(max_length=150, blank=True, default="system")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "stock_item",
                    models.ForeignKey(
                        to="inventory.stockitem",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="movements",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
            },
        ),
        migrations.AddConstraint(
            model_name="product",
            constraint=models.UniqueConstraint(
                fields=["workspace", "sku"],
                name="uniq_product_sku_per_workspace",
            ),
        ),
        migrations.AddConstraint(
            model_name="stockitem",
            constraint=models.UniqueConstraint(
                fields=["product", "variant"],
                condition=models.Q(variant__isnull=False),
                name="uniq_stock_item_product_variant",
            ),
        ),
        migrations.AddConstraint(
            model_name="stockitem",
            constraint=models.UniqueConstraint(
                fields=["product"],
                condition=models.Q(variant__isnull=True),
                name="uniq_stock_item_product_no_variant",
            ),
        ),
        migrations.AddConstraint(
            model_name="stockitem",
            constraint=models.CheckConstraint(
                condition=models.Q(reserved__lte=models.F("quantity")),
                name="stock_reserved_within_quantity",
            ),
        ),
        migrations.AddIndex(
            model_name="stockmovement",
            index=models.Index(fields=["stock_item", "created_at"], name="stockmove_item_created_idx"),
        ),
        migrations.AddIndex(
            model_name="stockmovement",
            index=models.Index(fields=["reference_type", "reference_id"], name="stockmove_reference_idx"),
        ),
        migrations.AddIndex(
            model_name="stockmovement",
            index=models.Index(fields=["movement_type"], name="stockmove_type_idx"),
        ),
    ]
