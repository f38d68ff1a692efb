# notifications/services/dispatch.py

"""
BEST-EFFORT NOTIFICATION DISPATCH

Rules:
- Notifications are registered with transaction.on_commit, so a rolled-back
  settlement never notifies anyone.
- Delivery failures are wrapped in SideEffectError and logged with context.
  They never propagate, so a failed notification never undoes a committed
  settlement.
- The outbound messenger is a collaborator passed in by the caller; the
  default one only logs (customer messaging transports live elsewhere).
"""

from __future__ import annotations

import logging
from functools import partial

from django.conf import settings
from django.db import transaction

from common.exceptions import SideEffectError
from notifications.models import Notification

logger = logging.getLogger(__name__)


class LoggingMessenger:
    """Default messenger: records the outbound message in the log only."""

    def send(self, *, workspace_id, kind: str, title: str, message: str, metadata: dict) -> None:
        logger.info(
            "Outbound notification",
            extra={"workspace_id": str(workspace_id), "kind": kind, "title": title},
        )


def deliver_notification(
    *,
    workspace_id,
    kind: str,
    title: str,
    message: str = "",
    entity_type: str = "",
    entity_id: str = "",
    metadata: dict | None = None,
    messenger=None,
) -> Notification | None:
    """
    Persist the in-app notification and hand it to the messenger.

    Returns the Notification row, or None when delivery failed.
    """
    metadata = metadata or {}
    messenger = messenger or LoggingMessenger()

    try:
        with transaction.atomic():
            notification = Notification.objects.create(
                workspace_id=workspace_id,
                kind=kind,
                title=title[:255],
                message=message,
                entity_type=entity_type,
                entity_id=str(entity_id or ""),
                metadata=metadata,
            )
        messenger.send(
            workspace_id=workspace_id,
            kind=kind,
            title=title,
            message=message,
            metadata=metadata,
        )
        return notification
    except Exception as exc:
        error = SideEffectError(f"Notification '{kind}' failed: {exc}")
        logger.exception(
            "Best-effort side effect failed",
            extra={
                "error_code": error.code,
                "kind": kind,
                "workspace_id": str(workspace_id),
                "entity_type": entity_type,
                "entity_id": str(entity_id or ""),
            },
        )
        return None


def notify_after_commit(
    *,
    workspace_id,
    kind: str,
    title: str,
    message: str = "",
    entity_type: str = "",
    entity_id: str = "",
    metadata: dict | None = None,
    messenger=None,
) -> None:
    if not getattr(settings, "NOTIFICATIONS_ENABLED", True):
        return

    transaction.on_commit(
        partial(
            deliver_notification,
            workspace_id=workspace_id,
            kind=kind,
            title=title,
            message=message,
            entity_type=entity_type,
            entity_id=str(entity_id or ""),
            metadata=metadata or {},
            messenger=messenger,
        )
    )
