"""
======================================================
PATH: ledger/migrations/0001_initial.py
======================================================
MIGRATION: CREATE LedgerEntry

Purpose:
- Append-only customer ledger (immutability is enforced in the model).
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
    ]

    operations = [
        migrations.CreateModel(
            name="LedgerEntry",
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
                    "entry_type",
                    models.CharField(
                        max_length=6,
                        choices=[("debit", "Debit"), ("credit", "Credit")],
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        max_digits=14,
                        decimal_places=2,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.01"))],
                        help_text="Positive monetary value",
                    ),
                ),
                ("balance_after", models.DecimalField(max_digits=14, decimal_places=2)),
                ("currency", models.CharField(max_length=3, default="ARS")),
                (
                    "reference_type",
                    models.CharField(
                        max_length=32,
                        choices=[
                            ("Order", "Order"),
                            ("Payment", "Payment"),
                            ("Receipt", "Receipt"),
                            ("ReceiptReversal", "Receipt reversal"),
                            ("Adjustment", "Adjustment"),
                            ("WriteOff", "Write-off"),
                            ("Refund", "Refund"),
                            ("OrderCancellation", "Order cancellation"),
                        ],
                    ),
                ),
                ("reference_id", models.CharField(max_length=64, blank=True, default="")),
                ("description", models.CharField(max_length=255, blank=True, default="")),
                ("metadata", models.JSONField(default=dict, blank=True)),
                ("created_by", models.CharField(max_length=150, blank=True, default="system")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "customer",
                    models.ForeignKey(
                        to="customers.customer",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ledger_entries",
                    ),
                ),
                (
                    "workspace",
                    models.ForeignKey(
                        to="workspaces.workspace",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ledger_entries",
                    ),
                ),
            ],
            options={
                "verbose_name": "Ledger Entry",
                "verbose_name_plural": "Ledger Entries",
                "ordering": ["created_at"],
            },
        ),
        migrations.AddIndex(
            model_name="ledgerentry",
            index=models.Index(fields=["customer", "created_at"], name="ledger_customer_created_idx"),
        ),
        migrations.AddIndex(
            model_name="ledgerentry",
            index=models.Index(fields=["customer", "entry_type"], name="ledger_customer_type_idx"),
        ),
        migrations.AddIndex(
            model_name="ledgerentry",
            index=models.Index(fields=["reference_type", "reference_id"], name="ledger_reference_idx"),
        ),
        migrations.AddIndex(
            model_name="ledgerentry",
            index=models.Index(fields=["workspace", "created_at"], name="ledger_ws_created_idx"),
        ),
    ]
