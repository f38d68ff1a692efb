"""
======================================================
PATH: receipts/migrations/0001_initial.py
======================================================
MIGRATION: CREATE Receipt

Purpose:
- Payment evidence with extraction results and the ledger entry it produced.
- (customer, file_hash) is unique.
"""

from __future__ import annotations

import uuid

from django.db import migrations, models
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
            name="Receipt",
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
                ("file_ref", models.CharField(max_length=512, blank=True, default="")),
                ("file_name", models.CharField(max_length=255, blank=True, default="")),
                ("file_type", models.CharField(max_length=64, blank=True, default="")),
                ("file_size_bytes", models.PositiveIntegerField(default=0)),
                ("file_hash", models.CharField(max_length=64)),
                (
                    "extracted_amount",
                    models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True),
                ),
                (
                    "extracted_confidence",
                    models.DecimalField(max_digits=4, decimal_places=3, null=True, blank=True),
                ),
                ("extracted_raw_text", models.TextField(blank=True, default="")),
                (
                    "declared_amount",
                    models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True),
                ),
                (
                    "applied_amount",
                    models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True),
                ),
                ("payment_method", models.CharField(max_length=32, blank=True, default="transfer")),
                (
                    "status",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("pending_review", "Pending review"),
                            ("applied", "Applied"),
                            ("rejected", "Rejected"),
                        ],
                        default="pending_review",
                    ),
                ),
                ("rejection_reason", models.CharField(max_length=255, blank=True, default="")),
                ("uploaded_by", models.CharField(max_length=150, blank=True, default="system")),
                ("applied_by", models.CharField(max_length=150, blank=True, default="")),
                ("applied_at", models.DateTimeField(null=True, blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "customer",
                    models.ForeignKey(
                        to="customers.customer",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="receipts",
                    ),
                ),
                (
                    "ledger_entry",
                    models.ForeignKey(
                        to="ledger.ledgerentry",
                        on_delete=django.db.models.deletion.PROTECT,
                        null=True,
                        blank=True,
                        related_name="receipts",
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        to="orders.order",
                        on_delete=django.db.models.deletion.PROTECT,
                        null=True,
                        blank=True,
                        related_name="receipts",
                    ),
                ),
                (
                    "workspace",
                    models.ForeignKey(
                        to="workspaces.workspace",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="receipts",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddIndex(
            model_name="receipt",
            index=models.Index(fields=["customer", "status"], name="receipt_customer_status_idx"),
        ),
        migrations.AddIndex(
            model_name="receipt",
            index=models.Index(fields=["order"], name="receipt_order_idx"),
        ),
        migrations.AddConstraint(
            model_name="receipt",
            constraint=models.UniqueConstraint(
                fields=["customer", "file_hash"],
                name="uniq_receipt_hash_per_customer",
            ),
        ),
    ]
