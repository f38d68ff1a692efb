# payments/models/webhook_inbox.py

"""
WEBHOOK INBOX

Every inbound provider notification is written here BEFORE any business
effect runs. (provider, workspace, external_id) is unique: that constraint
is the final idempotency backstop against concurrent duplicate deliveries.

pending -> processing -> processed
                      -> failed  (retry_count++, replayable from payload)
"""

import uuid

from django.db import models


class WebhookInbox(models.Model):
    STATUS_PENDING = "pending"
    STATUS_PROCESSING = "processing"
    STATUS_PROCESSED = "processed"
    STATUS_FAILED = "failed"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_PROCESSING, "Processing"),
        (STATUS_PROCESSED, "Processed"),
        (STATUS_FAILED, "Failed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    workspace = models.ForeignKey(
        "workspaces.Workspace",
        on_delete=models.PROTECT,
        related_name="webhook_inbox",
    )

    provider = models.CharField(max_length=32)
    external_id = models.CharField(max_length=128)
    event_type = models.CharField(max_length=64, blank=True, default="")

    payload = models.JSONField(default=dict)
    signature = models.CharField(max_length=512, blank=True, default="")

    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING)
    correlation_id = models.UUIDField(default=uuid.uuid4, editable=False)

    retry_count = models.PositiveIntegerField(default=0)
    last_attempt_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(blank=True, default="")
    result = models.JSONField(default=dict, blank=True)

    received_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = "Webhook inbox entry"
        verbose_name_plural = "Webhook inbox"
        ordering = ["received_at"]
        indexes = [
            models.Index(fields=["status", "received_at"], name="webhook_status_received_idx"),
            models.Index(fields=["status", "retry_count"], name="webhook_status_retry_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["provider", "workspace", "external_id"],
                name="uniq_webhook_provider_workspace_external_id",
            ),
        ]

    def __str__(self):
        return f"{self.provider}:{self.external_id} | {self.status}"
