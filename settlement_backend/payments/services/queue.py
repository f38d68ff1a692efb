# payments/services/queue.py

"""
Inbox hand-off from the HTTP edge to the worker.

- immediate: process right after the inbox row commits. With no open
  transaction that is still inside the webhook request, so it is for
  dev and tests only (production settings refuse it)
- deferred : leave the row pending; `manage.py process_webhook_inbox`
  drains it
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import transaction

from payments.services.processor import WebhookProcessor

logger = logging.getLogger(__name__)


class ImmediateInboxQueue:
    name = "immediate"

    def __init__(self, *, processor: WebhookProcessor | None = None):
        self.processor = processor or WebhookProcessor()

    def enqueue(self, inbox_id) -> None:
        transaction.on_commit(lambda: self.processor.process(inbox_id))


class DeferredInboxQueue:
    name = "deferred"

    def enqueue(self, inbox_id) -> None:
        logger.info("Webhook queued for worker", extra={"inbox_id": str(inbox_id)})


QUEUE_BACKENDS = {
    ImmediateInboxQueue.name: ImmediateInboxQueue,
    DeferredInboxQueue.name: DeferredInboxQueue,
}


def build_inbox_queue(backend: str | None = None):
    backend = (backend or getattr(settings, "WEBHOOK_QUEUE_BACKEND", "deferred")).strip().lower()
    allowed = getattr(settings, "WEBHOOK_QUEUE_ALLOWED_BACKENDS", None) or list(QUEUE_BACKENDS)

    if backend not in QUEUE_BACKENDS:
        raise ImproperlyConfigured(
            f"WEBHOOK_QUEUE_BACKEND must be one of {sorted(QUEUE_BACKENDS)}, got '{backend}'"
        )
    if backend not in allowed:
        raise ImproperlyConfigured(
            f"WEBHOOK_QUEUE_BACKEND '{backend}' is not allowed here (allowed: {sorted(allowed)})"
        )
    return QUEUE_BACKENDS[backend]()
