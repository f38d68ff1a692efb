"""
======================================================
PATH: orders/migrations/0001_initial.py
======================================================
MIGRATION: CREATE Order, OrderItem, OrderStatusHistory, InvoiceRecord

Purpose:
- Orders with paid_amount bounded by total at the database level.
- Append-only status history and invoice authorization records.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.db import migrations, models
import django.core.validators
import django.db.models.deletion
import django.utils.timezone


ORDER_STATUS_CHOICES = [
    ("draft", "Draft"),
    ("awaiting_acceptance", "Awaiting acceptance"),
    ("accepted", "Accepted"),
    ("processing", "Processing"),
    ("shipped", "Shipped"),
    ("delivered", "Delivered"),
    ("paid", "Paid"),
    ("pending_invoicing", "Pending invoicing"),
    ("invoiced", "Invoiced"),
    ("invoice_cancelled", "Invoice cancelled"),
    ("cancelled", "Cancelled"),
    ("returned", "Returned"),
    ("trashed", "Trashed"),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("workspaces", "0001_initial"),
        ("customers", "0001_initial"),
        ("inventory", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
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
                ("order_number", models.CharField(max_length=32)),
                (
                    "status",
                    models.CharField(max_length=32, choices=ORDER_STATUS_CHOICES, default="draft"),
                ),
                ("subtotal", models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))),
                ("tax", models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))),
                ("discount", models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))),
                ("shipping", models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))),
                ("total", models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))),
                (
                    "paid_amount",
                    models.DecimalField(
                        max_digits=12,
                        decimal_places=2,
                        default=Decimal("0.00"),
                        editable=False,
                        help_text="Service-managed. Always between 0 and total.",
                    ),
                ),
                ("debit_posted", models.BooleanField(default=False, editable=False)),
                ("notes", models.TextField(blank=True, default="")),
                ("metadata", models.JSONField(default=dict, blank=True)),
                ("created_by", models.CharField(max_length=150, blank=True, default="system")),
                (
                    "created_at",
                    models.DateTimeField(default=django.utils.timezone.now, db_index=True),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("paid_at", models.DateTimeField(null=True, blank=True)),
                ("cancelled_at", models.DateTimeField(null=True, blank=True)),
                ("cancel_reason", models.CharField(max_length=255, blank=True, default="")),
                ("deleted_at", models.DateTimeField(null=True, blank=True)),
                (
                    "customer",
                    models.ForeignKey(
                        to="customers.customer",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                    ),
                ),
                (
                    "workspace",
                    models.ForeignKey(
                        to="workspaces.workspace",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
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
                ("product_name", models.CharField(max_length=255)),
                (
                    "quantity",
                    models.PositiveIntegerField(
                        validators=[django.core.validators.MinValueValidator(1)]
                    ),
                ),
                ("unit_price", models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))),
                ("line_total", models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))),
                (
                    "order",
                    models.ForeignKey(
                        to="orders.order",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        to="inventory.product",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="order_items",
                    ),
                ),
                (
                    "variant",
                    models.ForeignKey(
                        to="inventory.productvariant",
                        on_delete=django.db.models.deletion.PROTECT,
                        null=True,
                        blank=True,
                        related_name="order_items",
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
            },
        ),
        migrations.CreateModel(
            name="OrderStatusHistory",
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
                ("previous_status", models.CharField(max_length=32, blank=True, default="")),
                ("new_status", models.CharField(max_length=32)),
                ("reason", models.CharField(max_length=255, blank=True, default="")),
                ("source_reference", models.CharField(max_length=128, blank=True, default="")),
                ("changed_by", models.CharField(max_length=150, blank=True, default="system")),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "order",
                    models.ForeignKey(
                        to="orders.order",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="status_history",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "verbose_name_plural": "Order status history",
            },
        ),
        migrations.CreateModel(
            name="InvoiceRecord",
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
                    "status",
                    models.CharField(
                        max_length=16,
                        choices=[("approved", "Approved"), ("rejected", "Rejected")],
                    ),
                ),
                ("invoice_number", models.CharField(max_length=64, blank=True, default="")),
                ("authorization_code", models.CharField(max_length=64, blank=True, default="")),
                ("authorization_expires_at", models.DateTimeField(null=True, blank=True)),
                ("raw_response", models.JSONField(default=dict, blank=True)),
                ("requested_by", models.CharField(max_length=150, blank=True, default="system")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "order",
                    models.ForeignKey(
                        to="orders.order",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="invoice_records",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddIndex(
            model_name="order",
            index=models.Index(fields=["workspace", "status"], name="order_ws_status_idx"),
        ),
        migrations.AddIndex(
            model_name="order",
            index=models.Index(fields=["customer", "created_at"], name="order_customer_created_idx"),
        ),
        migrations.AddIndex(
            model_name="order",
            index=models.Index(fields=["customer", "status"], name="order_customer_status_idx"),
        ),
        migrations.AddConstraint(
            model_name="order",
            constraint=models.UniqueConstraint(
                fields=["workspace", "order_number"],
                name="uniq_order_number_per_workspace",
            ),
        ),
        migrations.AddConstraint(
            model_name="order",
            constraint=models.CheckConstraint(
                condition=models.Q(total__gte=0),
                name="order_total_non_negative",
            ),
        ),
        migrations.AddConstraint(
            model_name="order",
            constraint=models.CheckConstraint(
                condition=models.Q(paid_amount__gte=0) & models.Q(paid_amount__lte=models.F("total")),
                name="order_paid_amount_within_total",
            ),
        ),
        migrations.AddIndex(
            model_name="orderstatushistory",
            index=models.Index(fields=["order", "created_at"], name="orderhist_order_created_idx"),
        ),
    ]
