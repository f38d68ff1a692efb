# payments/services/idempotency.py

"""
IDEMPOTENCY GATE

The first delivery of (provider, workspace, external_id) is persisted,
raw payload and all, before anything else happens. Every later delivery
is reported as a duplicate and must not trigger side effects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import IntegrityError, transaction

from payments.models import WebhookInbox

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GateResult:
    entry: WebhookInbox
    is_duplicate: bool


def record_inbound(
    *,
    provider: str,
    workspace_id,
    external_id: str,
    event_type: str = "",
    payload: dict,
    signature: str = "",
) -> GateResult:
    lookup = {
        "provider": provider,
        "workspace_id": workspace_id,
        "external_id": str(external_id)[:128],
    }

    existing = WebhookInbox.objects.filter(**lookup).first()
    if existing is not None:
        logger.info(
            "Duplicate webhook discarded",
            extra={**{k: str(v) for k, v in lookup.items()}, "inbox_id": str(existing.pk)},
        )
        return GateResult(entry=existing, is_duplicate=True)

    try:
        with transaction.atomic():
            entry = WebhookInbox.objects.create(
                **lookup,
                event_type=(event_type or "")[:64],
                payload=payload,
                signature=(signature or "")[:512],
            )
    except IntegrityError:
        # A concurrent delivery won the insert.
        entry = WebhookInbox.objects.get(**lookup)
        return GateResult(entry=entry, is_duplicate=True)

    logger.info(
        "Webhook recorded",
        extra={
            "inbox_id": str(entry.pk),
            "provider": provider,
            "external_id": entry.external_id,
            "correlation_id": str(entry.correlation_id),
        },
    )
    return GateResult(entry=entry, is_duplicate=False)
