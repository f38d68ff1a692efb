# workspaces/models/workspace.py

import uuid

from django.db import models
from django.db.models import Q


class Workspace(models.Model):
    """
    Tenant boundary.

    - slug is optional, but if provided it must be unique
    - currency is the ledger currency for all of this workspace's customers
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255)

    slug = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        db_index=True,
        help_text="Short unique handle (optional). If set, must be unique.",
    )

    currency = models.CharField(max_length=3, default="ARS")
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["slug"],
                condition=Q(slug__isnull=False) & ~Q(slug=""),
                name="uniq_workspace_slug_when_present",
            ),
        ]

    def __str__(self):
        s = (self.slug or "").strip()
        if s:
            return f"{self.name} ({s})"
        return self.name
