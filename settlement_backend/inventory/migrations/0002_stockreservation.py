"""
======================================================
PATH: inventory/migrations/0002_stockreservation.py
======================================================
MIGRATION: CREATE StockReservation

Purpose:
- Time-bounded stock holds per order. Needs orders.Order, so it runs
  after orders/0001_initial.
"""

from __future__ import annotations

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    dependencies = [
        ("inventory", "0001_initial"),
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="StockReservation",
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
                ("quantity", models.PositiveIntegerField()),
                (
                    "status",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("active", "Active"),
                            ("released", "Released"),
                            ("consumed", "Consumed"),
                            ("expired", "Expired"),
                        ],
                        default="active",
                    ),
                ),
                ("expires_at", models.DateTimeField()),
                ("committed_at", models.DateTimeField(null=True, blank=True)),
                ("released_at", models.DateTimeField(null=True, blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "order",
                    models.ForeignKey(
                        to="orders.order",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="stock_reservations",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        to="inventory.product",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reservations",
                    ),
                ),
                (
                    "stock_item",
                    models.ForeignKey(
                        to="inventory.stockitem",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reservations",
                    ),
                ),
                (
                    "variant",
                    models.ForeignKey(
                        to="inventory.productvariant",
                        on_delete=django.db.models.deletion.PROTECT,
                        null=True,
                        blank=True,
                        related_name="reservations",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
            },
        ),
        migrations.AddIndex(
            model_name="stockreservation",
            index=models.Index(fields=["status", "expires_at"], name="stockres_status_expires_idx"),
        ),
        migrations.AddIndex(
            model_name="stockreservation",
            index=models.Index(fields=["order", "status"], name="stockres_order_status_idx"),
        ),
    ]
