"""
======================================================
PATH: customers/migrations/0001_initial.py
======================================================
MIGRATION: CREATE Customer

Purpose:
- Customer table with the cached ledger balance and derived stats.
- Email is unique per workspace when present.
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
    ]

    operations = [
        migrations.CreateModel(
            name="Customer",
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
                ("name", models.CharField(max_length=255)),
                ("email", models.EmailField(max_length=254, blank=True, default="")),
                ("phone", models.CharField(max_length=50, blank=True, default="")),
                ("tax_id", models.CharField(max_length=32, blank=True, default="")),
                (
                    "current_balance",
                    models.DecimalField(
                        max_digits=14,
                        decimal_places=2,
                        default=Decimal("0.00"),
                        editable=False,
                        help_text="Service-managed cache of the signed ledger sum. Positive = owes.",
                    ),
                ),
                ("debt_reminder_count", models.PositiveIntegerField(default=0)),
                (
                    "payment_score",
                    models.PositiveSmallIntegerField(
                        default=100,
                        validators=[
                            django.core.validators.MinValueValidator(0),
                            django.core.validators.MaxValueValidator(100),
                        ],
                    ),
                ),
                ("order_count", models.PositiveIntegerField(default=0)),
                (
                    "total_spent",
                    models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00")),
                ),
                ("last_order_at", models.DateTimeField(null=True, blank=True)),
                ("last_payment_at", models.DateTimeField(null=True, blank=True)),
                ("deleted_at", models.DateTimeField(null=True, blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "workspace",
                    models.ForeignKey(
                        to="workspaces.workspace",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="customers",
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.AddIndex(
            model_name="customer",
            index=models.Index(fields=["workspace", "name"], name="customer_ws_name_idx"),
        ),
        migrations.AddIndex(
            model_name="customer",
            index=models.Index(fields=["workspace", "current_balance"], name="customer_ws_balance_idx"),
        ),
        migrations.AddConstraint(
            model_name="customer",
            constraint=models.UniqueConstraint(
                fields=["workspace", "email"],
                condition=~models.Q(email=""),
                name="uniq_customer_email_per_workspace",
            ),
        ),
    ]
