"""
======================================================
PATH: notifications/migrations/0001_initial.py
======================================================
MIGRATION: CREATE Notification
"""

from __future__ import annotations

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("workspaces", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Notification",
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
                    "kind",
                    models.CharField(
                        max_length=32,
                        choices=[
                            ("low_stock", "Low stock"),
                            ("payment_received", "Payment received"),
                            ("order_paid", "Order paid"),
                            ("receipt_uploaded", "Receipt uploaded"),
                            ("webhook_failed", "Webhook failed"),
                        ],
                    ),
                ),
                ("title", models.CharField(max_length=255)),
                ("message", models.TextField(blank=True, default="")),
                ("entity_type", models.CharField(max_length=32, blank=True, default="")),
                ("entity_id", models.CharField(max_length=64, blank=True, default="")),
                ("metadata", models.JSONField(default=dict, blank=True)),
                ("read_at", models.DateTimeField(null=True, blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "workspace",
                    models.ForeignKey(
                        to="workspaces.workspace",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddIndex(
            model_name="notification",
            index=models.Index(fields=["workspace", "read_at"], name="notif_ws_read_idx"),
        ),
        migrations.AddIndex(
            model_name="notification",
            index=models.Index(fields=["kind"], name="notif_kind_idx"),
        ),
    ]
