"""
======================================================
PATH: workspaces/migrations/0001_initial.py
======================================================
MIGRATION: CREATE Workspace

Purpose:
- Tenant table every other app hangs off.
- Slug is unique only when present (partial unique constraint).
"""

from __future__ import annotations

import uuid

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Workspace",
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
                (
                    "slug",
                    models.CharField(
                        max_length=64,
                        null=True,
                        blank=True,
                        db_index=True,
                        help_text="Short unique handle (optional). If set, must be unique.",
                    ),
                ),
                ("currency", models.CharField(max_length=3, default="ARS")),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.AddConstraint(
            model_name="workspace",
            constraint=models.UniqueConstraint(
                fields=["slug"],
                condition=models.Q(slug__isnull=False) & ~models.Q(slug=""),
                name="uniq_workspace_slug_when_present",
            ),
        ),
    ]
