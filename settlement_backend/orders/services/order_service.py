# orders/services/order_service.py

"""
ORDER SERVICE (APPLICATION SERVICE)

Purpose:
- Create orders with their stock reservations in ONE transaction.
- Drive every status change and its side effects:
    * entering a debt-bearing status  -> customer ledger debit (once)
    * shipped / delivered             -> reservations consumed
    * cancelled / returned            -> reservations released + debit reversed
    * trashed / restored / deleted    -> soft lifecycle, previous status kept

Hard rules:
- Lock order: customer -> order -> stock items (same as settlement).
- Insufficient stock aborts the whole creation. No order, no partial holds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from common.exceptions import NotFoundError, StateError, ValidationError
from common.money import ZERO, money
from customers.models import Customer
from customers.services.financials import recalculate_customer_financials
from inventory.models import Product, ProductVariant
from inventory.services.reservations import (
    ReservationLine,
    consume_for_order,
    release_for_order,
    reserve_for_order,
)
from ledger.models import LedgerEntry
from ledger.services.ledger_service import (
    actor_label,
    create_order_debit,
    lock_customer,
    reverse_order_debit,
)
from ledger.services.settlement import apply_payment_to_order, mark_paid_if_settled
from orders.models import Order, OrderItem
from orders.services.order_lifecycle import (
    DEBT_BEARING_STATES,
    FULFILLMENT_STATES,
    RELEASE_STATES,
    record_transition,
    validate_transition,
)
from orders.services.order_numbers import create_with_order_number
from payments.models import Payment

logger = logging.getLogger(__name__)

CREATABLE_STATES = {
    Order.STATUS_DRAFT,
    Order.STATUS_AWAITING_ACCEPTANCE,
    Order.STATUS_ACCEPTED,
}

SOFT_DELETABLE_STATES = {
    Order.STATUS_DRAFT,
    Order.STATUS_CANCELLED,
    Order.STATUS_TRASHED,
}

# Trashed orders restored into these get their stock held again.
RESERVING_STATES = {
    Order.STATUS_DRAFT,
    Order.STATUS_AWAITING_ACCEPTANCE,
}

# Money taken while in these cannot flip the order to paid until it is accepted.
PRE_ACCEPTANCE_STATES = {
    Order.STATUS_DRAFT,
    Order.STATUS_AWAITING_ACCEPTANCE,
}


@dataclass(frozen=True)
class OrderLineInput:
    product_id: object
    quantity: int
    variant_id: object = None
    unit_price: Decimal | None = None


def _lock_order(order_id) -> Order:
    try:
        return Order.objects.select_for_update().get(pk=order_id)
    except (Order.DoesNotExist, DjangoValidationError, ValueError, TypeError) as exc:
        raise NotFoundError(f"Order {order_id} not found", code="ORDER_NOT_FOUND") from exc


def lock_order_with_customer(order_id) -> Order:
    try:
        customer_id = Order.objects.values_list("customer_id", flat=True).get(pk=order_id)
    except (Order.DoesNotExist, DjangoValidationError, ValueError, TypeError) as exc:
        raise NotFoundError(f"Order {order_id} not found", code="ORDER_NOT_FOUND") from exc
    lock_customer(customer_id)
    return _lock_order(order_id)


def _resolve_lines(*, workspace_id, items) -> list[dict]:
    if not items:
        raise ValidationError("Order must contain at least one item", code="EMPTY_ORDER")

    resolved = []
    for raw in items:
        qty = int(raw.quantity or 0)
        if qty <= 0:
            raise ValidationError("Item quantity must be greater than zero")

        product = Product.objects.filter(
            pk=raw.product_id, workspace_id=workspace_id, is_active=True
        ).first()
        if product is None:
            raise NotFoundError(f"Product {raw.product_id} not found", code="PRODUCT_NOT_FOUND")

        variant = None
        if raw.variant_id:
            variant = ProductVariant.objects.filter(
                pk=raw.variant_id, product=product, is_active=True
            ).first()
            if variant is None:
                raise NotFoundError(
                    f"Variant {raw.variant_id} not found", code="VARIANT_NOT_FOUND"
                )

        if raw.unit_price is not None:
            unit_price = money(raw.unit_price)
        elif variant is not None:
            unit_price = money(variant.effective_price)
        else:
            unit_price = money(product.unit_price)

        if unit_price < ZERO:
            raise ValidationError("unit_price cannot be negative")

        name = product.name if variant is None else f"{product.name} / {variant.name}"
        resolved.append(
            {
                "product": product,
                "variant": variant,
                "name": name,
                "quantity": qty,
                "unit_price": unit_price,
            }
        )
    return resolved


# ======================================================
# CREATE
# ======================================================


@transaction.atomic
def create_order(
    *,
    workspace_id,
    customer_id,
    items,
    status: str = Order.STATUS_DRAFT,
    tax=None,
    discount=None,
    shipping=None,
    notes: str = "",
    metadata: dict | None = None,
    initial_payment=None,
    payment_method: str = Payment.METHOD_CASH,
    actor=None,
) -> Order:
    if status not in CREATABLE_STATES:
        raise ValidationError(
            f"Orders cannot be created in status '{status}'", code="INVALID_INITIAL_STATUS"
        )

    customer = Customer.objects.filter(
        pk=customer_id, workspace_id=workspace_id, deleted_at__isnull=True
    ).first()
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found", code="CUSTOMER_NOT_FOUND")

    lines = _resolve_lines(workspace_id=workspace_id, items=items)

    subtotal = sum((line["unit_price"] * line["quantity"] for line in lines), ZERO)
    tax_amt = money(tax)
    discount_amt = money(discount)
    shipping_amt = money(shipping)
    total = money(subtotal + tax_amt + shipping_amt - discount_amt)

    if min(tax_amt, discount_amt, shipping_amt) < ZERO:
        raise ValidationError("tax, discount and shipping cannot be negative")
    if total < ZERO:
        raise ValidationError("Order total cannot be negative", code="NEGATIVE_TOTAL")

    created_by = actor_label(actor)

    def build(order_number: str) -> Order:
        order = Order.objects.create(
            workspace_id=workspace_id,
            customer=customer,
            order_number=order_number,
            status=status,
            subtotal=money(subtotal),
            tax=tax_amt,
            discount=discount_amt,
            shipping=shipping_amt,
            total=total,
            notes=notes or "",
            metadata=metadata or {},
            created_by=created_by,
        )

        for line in lines:
            OrderItem.objects.create(
                order=order,
                product=line["product"],
                variant=line["variant"],
                product_name=line["name"],
                quantity=line["quantity"],
                unit_price=line["unit_price"],
            )

        order.status_history.create(
            previous_status="",
            new_status=status,
            reason="Order created",
            changed_by=created_by,
        )

        reserve_for_order(
            order=order,
            lines=[
                ReservationLine(
                    product_id=line["product"].pk,
                    variant_id=line["variant"].pk if line["variant"] else None,
                    quantity=line["quantity"],
                )
                for line in lines
            ],
            actor=actor,
        )
        return order

    order = create_with_order_number(workspace_id=workspace_id, build=build)

    if status in DEBT_BEARING_STATES:
        create_order_debit(order=order, actor=actor)

    if initial_payment not in (None, "") and money(initial_payment) > ZERO:
        apply_payment_to_order(
            customer_id=customer.pk,
            order_id=order.pk,
            amount=initial_payment,
            reference_type=LedgerEntry.REF_PAYMENT,
            actor=actor,
            provider=Payment.PROVIDER_MANUAL,
            method=payment_method,
            description=f"Initial payment for order {order.order_number}",
        )
        order.refresh_from_db()

    recalculate_customer_financials(customer_id=customer.pk)

    logger.info(
        "Order created",
        extra={
            "order_id": str(order.pk),
            "order_number": order.order_number,
            "customer_id": str(customer.pk),
            "total": str(order.total),
            "status": order.status,
        },
    )
    return order


# ======================================================
# STATUS CHANGES
# ======================================================


@transaction.atomic
def change_status(*, order_id, target_status: str, actor=None, reason: str = "") -> Order:
    if target_status == Order.STATUS_TRASHED:
        return trash_order(order_id=order_id, actor=actor)

    order = lock_order_with_customer(order_id)
    if order.deleted_at is not None:
        raise StateError(f"Order {order.order_number} is deleted", code="ORDER_DELETED")

    validate_transition(order=order, target_status=target_status)
    previous_status = order.status
    record_transition(order=order, target_status=target_status, actor=actor, reason=reason)

    if target_status in DEBT_BEARING_STATES and not order.debit_posted:
        create_order_debit(order=order, actor=actor)

    if previous_status in PRE_ACCEPTANCE_STATES and target_status in DEBT_BEARING_STATES:
        mark_paid_if_settled(order=order, actor=actor)

    if target_status in FULFILLMENT_STATES:
        consume_for_order(order=order, actor=actor)

    if target_status in RELEASE_STATES:
        release_for_order(order=order, actor=actor, reason=f"Order {target_status}")
        reverse_order_debit(order=order, actor=actor, reason=target_status)

    if target_status == Order.STATUS_CANCELLED:
        order.cancelled_at = timezone.now()
        order.cancel_reason = (reason or "")[:255]
        order.save(update_fields=["cancelled_at", "cancel_reason", "updated_at"])

    recalculate_customer_financials(customer_id=order.customer_id)
    order.refresh_from_db()
    return order


def cancel_order(*, order_id, actor=None, reason: str = "") -> Order:
    return change_status(
        order_id=order_id,
        target_status=Order.STATUS_CANCELLED,
        actor=actor,
        reason=reason,
    )


@transaction.atomic
def trash_order(*, order_id, actor=None) -> Order:
    order = lock_order_with_customer(order_id)
    validate_transition(order=order, target_status=Order.STATUS_TRASHED)

    previous = order.status
    order.metadata = {**(order.metadata or {}), "previous_status": previous}
    order.save(update_fields=["metadata", "updated_at"])

    record_transition(
        order=order, target_status=Order.STATUS_TRASHED, actor=actor, reason="Trashed"
    )
    release_for_order(order=order, actor=actor, reason="Order trashed")
    reverse_order_debit(order=order, actor=actor, reason="trashed")
    recalculate_customer_financials(customer_id=order.customer_id)
    return order


@transaction.atomic
def restore_order(*, order_id, actor=None) -> Order:
    order = lock_order_with_customer(order_id)
    if order.status != Order.STATUS_TRASHED:
        raise StateError(
            f"Only trashed orders can be restored (status '{order.status}')",
            code="ORDER_NOT_TRASHED",
        )
    if order.deleted_at is not None:
        raise StateError(f"Order {order.order_number} is deleted", code="ORDER_DELETED")

    metadata = dict(order.metadata or {})
    previous = metadata.pop("previous_status", None) or Order.STATUS_DRAFT
    order.metadata = metadata
    order.save(update_fields=["metadata", "updated_at"])

    record_transition(
        order=order,
        target_status=previous,
        actor=actor,
        reason="Restored from trash",
        validate=False,
    )

    if previous in RESERVING_STATES:
        reserve_for_order(
            order=order,
            lines=[
                ReservationLine(
                    product_id=item.product_id,
                    variant_id=item.variant_id,
                    quantity=item.quantity,
                )
                for item in order.items.all()
            ],
            actor=actor,
        )
    if previous in DEBT_BEARING_STATES:
        create_order_debit(order=order, actor=actor)
    recalculate_customer_financials(customer_id=order.customer_id)
    return order


@transaction.atomic
def soft_delete_order(*, order_id, actor=None) -> Order:
    order = lock_order_with_customer(order_id)
    if order.deleted_at is not None:
        return order

    if order.status not in SOFT_DELETABLE_STATES:
        raise StateError(
            f"Order in status '{order.status}' cannot be deleted; cancel it first",
            code="ORDER_NOT_DELETABLE",
        )

    release_for_order(order=order, actor=actor, reason="Order deleted")
    order.deleted_at = timezone.now()
    order.save(update_fields=["deleted_at", "updated_at"])

    logger.info(
        "Order soft-deleted",
        extra={"order_id": str(order.pk), "actor": actor_label(actor)},
    )
    return order


def expire_stale_drafts(*, now=None, ttl_hours: int | None = None) -> int:
    """Cancel drafts older than DRAFT_ORDER_TTL_HOURS (releases their stock)."""
    now = now or timezone.now()
    ttl = int(ttl_hours or getattr(settings, "DRAFT_ORDER_TTL_HOURS", 72))
    cutoff = now - timedelta(hours=ttl)

    stale_ids = list(
        Order.objects.filter(
            status=Order.STATUS_DRAFT,
            deleted_at__isnull=True,
            created_at__lt=cutoff,
        ).values_list("id", flat=True)
    )

    count = 0
    for order_id in stale_ids:
        cancel_order(order_id=order_id, actor="draft-expiry", reason="Draft expired")
        count += 1

    if count:
        logger.info("Expired stale draft orders", extra={"count": count})
    return count
