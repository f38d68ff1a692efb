# orders/services/order_numbers.py

"""
ORDER NUMBER GENERATOR

Format: ORD-YYYYMM-00001, a monotonic counter per workspace per month.

Two concurrent creations can compute the same "next" number before either
commits. The (workspace, order_number) unique constraint catches that; we
retry with a fresh number a bounded number of times and report exhaustion
as a ConflictError.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from common.exceptions import ConflictError
from orders.models import Order

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 5


class OrderNumberExhaustedError(ConflictError):
    code = "ORDER_NUMBER_CONFLICT"


def period_prefix(now=None) -> str:
    now = timezone.localtime(now or timezone.now())
    return now.strftime("ORD-%Y%m-")


def next_order_number(workspace_id, now=None) -> str:
    prefix = period_prefix(now)
    last = (
        Order.objects.filter(workspace_id=workspace_id, order_number__startswith=prefix)
        .order_by("-order_number")
        .values_list("order_number", flat=True)
        .first()
    )

    seq = 1
    if last:
        try:
            seq = int(last[len(prefix):]) + 1
        except ValueError:
            seq = Order.objects.filter(
                workspace_id=workspace_id, order_number__startswith=prefix
            ).count() + 1

    return f"{prefix}{seq:0{SEQUENCE_WIDTH}d}"


def create_with_order_number(*, workspace_id, build, max_attempts: int | None = None):
    """
    Call build(order_number) inside a savepoint until it succeeds.

    Only a collision on the order number is retried; any other integrity
    failure propagates unchanged.
    """
    attempts = int(max_attempts or getattr(settings, "ORDER_NUMBER_MAX_ATTEMPTS", 3))

    for attempt in range(1, attempts + 1):
        number = next_order_number(workspace_id)
        try:
            with transaction.atomic():
                return build(number)
        except IntegrityError:
            collided = Order.objects.filter(
                workspace_id=workspace_id, order_number=number
            ).exists()
            if not collided:
                raise
            logger.warning(
                "Order number collision",
                extra={
                    "workspace_id": str(workspace_id),
                    "order_number": number,
                    "attempt": attempt,
                },
            )

    raise OrderNumberExhaustedError(
        f"Could not allocate a unique order number after {attempts} attempts"
    )
