"""
ORDER LIFECYCLE DOMAIN RULES

This module defines the ONLY allowed status transitions for Order
entities and records every status change after creation.

DESIGN PRINCIPLES:
- No stock mutation
- No ledger writes
- Single source of truth for the status table
"""

from __future__ import annotations

from common.exceptions import StateError
from ledger.services.ledger_service import actor_label
from orders.models import Order, OrderStatusHistory

# ============================================================
# DOMAIN ERRORS
# ============================================================


class InvalidOrderTransitionError(StateError):
    code = "INVALID_ORDER_TRANSITION"


# ============================================================
# STATE DEFINITIONS
# ============================================================

# Trashed orders only leave via restore_order (back to their previous status).
TERMINAL_STATES = {
    Order.STATUS_TRASHED,
}

ALLOWED_TRANSITIONS = {
    Order.STATUS_DRAFT: {
        Order.STATUS_AWAITING_ACCEPTANCE,
        Order.STATUS_ACCEPTED,
        Order.STATUS_CANCELLED,
        Order.STATUS_TRASHED,
    },
    Order.STATUS_AWAITING_ACCEPTANCE: {
        Order.STATUS_ACCEPTED,
        Order.STATUS_CANCELLED,
        Order.STATUS_TRASHED,
    },
    Order.STATUS_ACCEPTED: {
        Order.STATUS_PROCESSING,
        Order.STATUS_SHIPPED,
        Order.STATUS_DELIVERED,
        Order.STATUS_PAID,
        Order.STATUS_PENDING_INVOICING,
        Order.STATUS_CANCELLED,
    },
    Order.STATUS_PROCESSING: {
        Order.STATUS_SHIPPED,
        Order.STATUS_DELIVERED,
        Order.STATUS_PAID,
        Order.STATUS_CANCELLED,
    },
    Order.STATUS_SHIPPED: {
        Order.STATUS_DELIVERED,
        Order.STATUS_PAID,
        Order.STATUS_RETURNED,
    },
    Order.STATUS_DELIVERED: {
        Order.STATUS_PAID,
        Order.STATUS_PENDING_INVOICING,
        Order.STATUS_RETURNED,
    },
    Order.STATUS_PAID: {
        Order.STATUS_PROCESSING,
        Order.STATUS_SHIPPED,
        Order.STATUS_DELIVERED,
        Order.STATUS_PENDING_INVOICING,
        Order.STATUS_RETURNED,
    },
    Order.STATUS_PENDING_INVOICING: {
        Order.STATUS_INVOICED,
        Order.STATUS_INVOICE_CANCELLED,
    },
    Order.STATUS_INVOICED: {
        Order.STATUS_RETURNED,
    },
    Order.STATUS_INVOICE_CANCELLED: {
        Order.STATUS_PENDING_INVOICING,
        Order.STATUS_CANCELLED,
    },
    Order.STATUS_CANCELLED: {
        Order.STATUS_TRASHED,
    },
    Order.STATUS_RETURNED: {
        Order.STATUS_TRASHED,
    },
}

# Entering any of these posts the order's debit to the customer ledger.
DEBT_BEARING_STATES = {
    Order.STATUS_AWAITING_ACCEPTANCE,
    Order.STATUS_ACCEPTED,
    Order.STATUS_PROCESSING,
    Order.STATUS_SHIPPED,
    Order.STATUS_DELIVERED,
    Order.STATUS_PAID,
    Order.STATUS_PENDING_INVOICING,
    Order.STATUS_INVOICED,
    Order.STATUS_INVOICE_CANCELLED,
}

FULFILLMENT_STATES = {
    Order.STATUS_SHIPPED,
    Order.STATUS_DELIVERED,
}

RELEASE_STATES = {
    Order.STATUS_CANCELLED,
    Order.STATUS_RETURNED,
}

# Settlement is refused for these.
UNSETTLEABLE_STATES = {
    Order.STATUS_CANCELLED,
    Order.STATUS_RETURNED,
    Order.STATUS_TRASHED,
}


# ============================================================
# DOMAIN RULES
# ============================================================


def can_transition(*, from_status: str, to_status: str) -> bool:
    if from_status in TERMINAL_STATES:
        return False

    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def validate_transition(*, order: Order, target_status: str):
    if not can_transition(from_status=order.status, to_status=target_status):
        raise InvalidOrderTransitionError(
            f"Order {order.order_number} cannot transition from "
            f"'{order.status}' to '{target_status}'"
        )


def record_transition(
    *,
    order: Order,
    target_status: str,
    actor=None,
    reason: str = "",
    source_reference: str = "",
    validate: bool = True,
) -> OrderStatusHistory:
    """
    Move order.status and append the history row. Caller holds the row lock
    and is responsible for saving any other fields it touched.

    validate=False is reserved for system reversals (payment reversal
    undoing a paid flip, restore from trash) that deliberately step
    outside the forward table.
    """
    if validate:
        validate_transition(order=order, target_status=target_status)

    history = OrderStatusHistory.objects.create(
        order=order,
        previous_status=order.status,
        new_status=target_status,
        reason=(reason or "")[:255],
        source_reference=(source_reference or "")[:128],
        changed_by=actor_label(actor),
    )

    order.status = target_status
    order.save(update_fields=["status", "updated_at"])
    return history


def last_paid_transition(order: Order) -> OrderStatusHistory | None:
    return (
        OrderStatusHistory.objects.filter(order=order, new_status=Order.STATUS_PAID)
        .order_by("-created_at", "-id")
        .first()
    )
