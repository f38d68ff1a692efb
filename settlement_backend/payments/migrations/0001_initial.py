"""
======================================================
PATH: payments/migrations/0001_initial.py
======================================================
MIGRATION: CREATE Payment, PaymentAllocation, WebhookInbox

Purpose:
- Payments, unique per (provider, external_id) when external_id is set.
- Immutable per-order allocation legs.
- Webhook inbox, unique per (provider, workspace, external_id).
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.db import migrations, models
import django.core.validators
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("workspaces", "0001_initial"),
        ("customers", "0001_initial"),
        ("ledger", "0001_initial"),
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
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
                (
                    "provider",
                    models.CharField(
                        max_length=32,
                        choices=[
                            ("mercadopago", "MercadoPago"),
                            ("paystack", "Paystack"),
                            ("manual", "Manual"),
                            ("receipt", "Receipt"),
                            ("credit", "Standing credit"),
                        ],
                    ),
                ),
                ("external_id", models.CharField(max_length=128, blank=True, default="")),
                (
                    "method",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("cash", "Cash"),
                            ("transfer", "Transfer"),
                            ("card", "Card"),
                            ("other", "Other"),
                        ],
                        default="other",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("reversed", "Reversed"),
                        ],
                        default="pending",
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        max_digits=12,
                        decimal_places=2,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.01"))],
                    ),
                ),
                ("fee", models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))),
                ("net_amount", models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))),
                ("provider_data", models.JSONField(default=dict, blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("completed_at", models.DateTimeField(null=True, blank=True)),
                ("reversed_at", models.DateTimeField(null=True, blank=True)),
                (
                    "customer",
                    models.ForeignKey(
                        to="customers.customer",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                    ),
                ),
                (
                    "ledger_entry",
                    models.ForeignKey(
                        to="ledger.ledgerentry",
                        on_delete=django.db.models.deletion.PROTECT,
                        null=True,
                        blank=True,
                        related_name="payments",
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        to="orders.order",
                        on_delete=django.db.models.deletion.PROTECT,
                        null=True,
                        blank=True,
                        related_name="payments",
                    ),
                ),
                (
                    "workspace",
                    models.ForeignKey(
                        to="workspaces.workspace",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="PaymentAllocation",
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
                ("amount", models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "order",
                    models.ForeignKey(
                        to="orders.order",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_allocations",
                    ),
                ),
                (
                    "payment",
                    models.ForeignKey(
                        to="payments.payment",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocations",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
            },
        ),
        migrations.CreateModel(
            name="WebhookInbox",
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
                ("provider", models.CharField(max_length=32)),
                ("external_id", models.CharField(max_length=128)),
                ("event_type", models.CharField(max_length=64, blank=True, default="")),
                ("payload", models.JSONField(default=dict)),
                ("signature", models.CharField(max_length=512, blank=True, default="")),
                (
                    "status",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        default="pending",
                    ),
                ),
                ("correlation_id", models.UUIDField(default=uuid.uuid4, editable=False)),
                ("retry_count", models.PositiveIntegerField(default=0)),
                ("last_attempt_at", models.DateTimeField(null=True, blank=True)),
                ("error_message", models.TextField(blank=True, default="")),
                ("result", models.JSONField(default=dict, blank=True)),
                ("received_at", models.DateTimeField(auto_now_add=True)),
                ("processed_at", models.DateTimeField(null=True, blank=True)),
                (
                    "workspace",
                    models.ForeignKey(
                        to="workspaces.workspace",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="webhook_inbox",
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook inbox entry",
                "verbose_name_plural": "Webhook inbox",
                "ordering": ["received_at"],
            },
        ),
        migrations.AddIndex(
            model_name="payment",
            index=models.Index(fields=["customer", "created_at"], name="payment_customer_created_idx"),
        ),
        migrations.AddIndex(
            model_name="payment",
            index=models.Index(fields=["order", "status"], name="payment_order_status_idx"),
        ),
        migrations.AddIndex(
            model_name="payment",
            index=models.Index(fields=["status"], name="payment_status_idx"),
        ),
        migrations.AddConstraint(
            model_name="payment",
            constraint=models.UniqueConstraint(
                fields=["provider", "external_id"],
                condition=~models.Q(external_id=""),
                name="uniq_payment_provider_external_id",
            ),
        ),
        migrations.AddIndex(
            model_name="paymentallocation",
            index=models.Index(fields=["payment"], name="allocation_payment_idx"),
        ),
        migrations.AddIndex(
            model_name="paymentallocation",
            index=models.Index(fields=["order"], name="allocation_order_idx"),
        ),
        migrations.AddIndex(
            model_name="webhookinbox",
            index=models.Index(fields=["status", "received_at"], name="webhook_status_received_idx"),
        ),
        migrations.AddIndex(
            model_name="webhookinbox",
            index=models.Index(fields=["status", "retry_count"], name="webhook_status_retry_idx"),
        ),
        migrations.AddConstraint(
            model_name="webhookinbox",
            constraint=models.UniqueConstraint(
                fields=["provider", "workspace", "external_id"],
                name="uniq_webhook_provider_workspace_external_id",
            ),
        ),
    ]
