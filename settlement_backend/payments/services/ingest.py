# payments/services/ingest.py

"""
WEBHOOK INGESTION (HTTP EDGE)

validate signature -> dedupe + persist -> enqueue. Nothing else.
The provider is never called from here.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from payments.services.adapters.base import InvalidSignatureError
from payments.services.idempotency import record_inbound
from workspaces.models import Workspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestResult:
    accepted: bool
    duplicate: bool = False
    inbox_id: str = ""
    detail: str = ""


def _parse_body(raw_body: bytes):
    try:
        payload = json.loads((raw_body or b"").decode("utf-8") or "null")
    except (UnicodeDecodeError, ValueError):
        return None
    return payload if isinstance(payload, dict) else None


class WebhookIngestor:
    def __init__(self, *, adapter, queue):
        self.adapter = adapter
        self.queue = queue

    def ingest(self, *, workspace_id, headers, query, raw_body: bytes) -> IngestResult:
        payload = _parse_body(raw_body)

        if not self.adapter.verify_signature(
            headers=headers, raw_body=raw_body, payload=payload, query=query
        ):
            logger.warning(
                "Webhook signature rejected",
                extra={"provider": self.adapter.provider, "workspace_id": str(workspace_id)},
            )
            raise InvalidSignatureError("Invalid webhook signature")

        if payload is None:
            logger.warning(
                "Webhook body is not a JSON object",
                extra={"provider": self.adapter.provider, "workspace_id": str(workspace_id)},
            )
            return IngestResult(accepted=False, detail="invalid payload")

        if not Workspace.objects.filter(pk=workspace_id, is_active=True).exists():
            logger.warning(
                "Webhook for unknown workspace",
                extra={"provider": self.adapter.provider, "workspace_id": str(workspace_id)},
            )
            return IngestResult(accepted=False, detail="unknown workspace")

        key = self.adapter.inbox_key(payload, query)
        gate = record_inbound(
            provider=self.adapter.provider,
            workspace_id=workspace_id,
            external_id=key.external_id,
            event_type=key.event_type,
            payload=payload,
            signature=headers.get(self.adapter.signature_header) or "",
        )

        if gate.is_duplicate:
            return IngestResult(
                accepted=True, duplicate=True, inbox_id=str(gate.entry.pk), detail="duplicate"
            )

        self.queue.enqueue(gate.entry.pk)
        return IngestResult(accepted=True, inbox_id=str(gate.entry.pk), detail="queued")
