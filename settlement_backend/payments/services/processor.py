# payments/services/processor.py

"""
======================================================
PATH: payments/services/processor.py
======================================================
WEBHOOK INBOX WORKER

process(inbox_id):
1) claim the row (locked, skip if already processed)
2) normalize through the provider adapter (may call the provider API;
   done OUTSIDE any transaction)
3) approved payments become evidence and are settled
4) row -> processed with a result, or failed with retry_count++

A provider payment that was already settled raises ConflictError in the
settlement engine; that is a successful duplicate, not a failure.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from common.exceptions import ConflictError, DomainError
from notifications.models import Notification
from notifications.services.dispatch import notify_after_commit
from payments.models import WebhookInbox
from payments.services.adapters import get_adapter
from payments.services.events import PaymentApproved, PaymentFailed, PaymentPending
from receipts.services.intake import from_webhook, settle_evidence

logger = logging.getLogger(__name__)

WORKER_ACTOR = "webhook-worker"


class WebhookProcessor:
    def __init__(self, *, adapter_factory=get_adapter):
        self.adapter_factory = adapter_factory

    # ------------------------------------------------------
    # state changes
    # ------------------------------------------------------

    def _claim(self, inbox_id) -> WebhookInbox | None:
        with transaction.atomic():
            entry = WebhookInbox.objects.select_for_update().filter(pk=inbox_id).first()
            if entry is None or entry.status == WebhookInbox.STATUS_PROCESSED:
                return None
            entry.status = WebhookInbox.STATUS_PROCESSING
            entry.last_attempt_at = timezone.now()
            entry.save(update_fields=["status", "last_attempt_at"])
            return entry

    def _finish(self, entry: WebhookInbox, result: dict) -> WebhookInbox:
        entry.status = WebhookInbox.STATUS_PROCESSED
        entry.result = result
        entry.error_message = ""
        entry.processed_at = timezone.now()
        entry.save(update_fields=["status", "result", "error_message", "processed_at"])
        return entry

    def _fail(self, entry: WebhookInbox, error: Exception) -> WebhookInbox:
        entry.status = WebhookInbox.STATUS_FAILED
        entry.retry_count = (entry.retry_count or 0) + 1
        entry.error_message = f"{getattr(error, 'code', type(error).__name__)}: {error}"[:2000]
        entry.save(update_fields=["status", "retry_count", "error_message"])

        notify_after_commit(
            workspace_id=entry.workspace_id,
            kind=Notification.KIND_WEBHOOK_FAILED,
            title=f"{entry.provider} webhook failed",
            message=entry.error_message,
            entity_type="WebhookInbox",
            entity_id=entry.pk,
            metadata={"retry_count": entry.retry_count},
        )
        return entry

    # ------------------------------------------------------
    # main entry
    # ------------------------------------------------------

    def _handle(self, entry: WebhookInbox) -> dict:
        adapter = self.adapter_factory(entry.provider)
        event = adapter.normalize(workspace_id=entry.workspace_id, payload=entry.payload or {})

        if isinstance(event, PaymentApproved):
            evidence = from_webhook(event)
            try:
                result = settle_evidence(
                    evidence,
                    workspace_id=entry.workspace_id,
                    actor=WORKER_ACTOR,
                    description=f"{event.provider} payment {event.external_id}",
                )
            except ConflictError as exc:
                if exc.code != "PAYMENT_ALREADY_APPLIED":
                    raise
                return {"outcome": "duplicate", "external_id": event.external_id}

            return {
                "outcome": "settled",
                "external_id": event.external_id,
                "payment_id": str(result.payment_id),
                "ledger_entry_id": str(result.ledger_entry_id),
                "applied_amount": str(result.applied_amount),
                "unallocated_amount": str(result.unallocated_amount),
                "orders": [str(s.order_id) for s in result.orders_settled],
            }

        if isinstance(event, PaymentPending):
            return {"outcome": "pending", "external_id": event.external_id, "status": event.status}

        if isinstance(event, PaymentFailed):
            return {
                "outcome": "failed_payment",
                "external_id": event.external_id,
                "status": event.status,
                "reason": event.reason,
            }

        return {"outcome": "ignored", "reason": event.reason}

    def process(self, inbox_id) -> WebhookInbox | None:
        entry = self._claim(inbox_id)
        if entry is None:
            return None

        log_extra = {
            "inbox_id": str(entry.pk),
            "provider": entry.provider,
            "external_id": entry.external_id,
            "correlation_id": str(entry.correlation_id),
        }

        try:
            result = self._handle(entry)
        except DomainError as exc:
            logger.warning(
                "Webhook processing failed",
                extra={**log_extra, "error_code": exc.code, "error": str(exc)},
            )
            return self._fail(entry, exc)
        except Exception as exc:
            logger.exception("Webhook processing crashed", extra=log_extra)
            return self._fail(entry, exc)

        logger.info("Webhook processed", extra={**log_extra, "outcome": result.get("outcome")})
        return self._finish(entry, result)


# ======================================================
# BATCH ENTRY POINTS (management commands)
# ======================================================

STALE_PROCESSING_MINUTES = 15


def drain_pending(*, limit: int = 100, processor: WebhookProcessor | None = None) -> int:
    processor = processor or WebhookProcessor()
    ids = list(
        WebhookInbox.objects.filter(status=WebhookInbox.STATUS_PENDING)
        .order_by("received_at")
        .values_list("id", flat=True)[:limit]
    )
    for inbox_id in ids:
        processor.process(inbox_id)
    return len(ids)


def retry_failed(
    *,
    max_retries: int | None = None,
    batch_size: int | None = None,
    processor: WebhookProcessor | None = None,
    now=None,
) -> int:
    """
    Replay failed rows under the retry ceiling, plus rows stuck in
    processing (worker died mid-flight) for longer than
    STALE_PROCESSING_MINUTES.
    """
    processor = processor or WebhookProcessor()
    max_retries = int(max_retries or getattr(settings, "WEBHOOK_MAX_RETRIES", 5))
    batch_size = int(batch_size or getattr(settings, "WEBHOOK_RETRY_BATCH_SIZE", 50))
    stale_before = (now or timezone.now()) - timedelta(minutes=STALE_PROCESSING_MINUTES)

    ids = list(
        WebhookInbox.objects.filter(retry_count__lt=max_retries)
        .filter(
            Q(status=WebhookInbox.STATUS_FAILED)
            | Q(status=WebhookInbox.STATUS_PROCESSING, last_attempt_at__lt=stale_before)
        )
        .order_by("last_attempt_at", "received_at")
        .values_list("id", flat=True)[:batch_size]
    )
    for inbox_id in ids:
        processor.process(inbox_id)
    return len(ids)
