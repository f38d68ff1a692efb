# ledger/services/settlement.py

"""
======================================================
PATH: ledger/services/settlement.py
======================================================
SETTLEMENT ENGINE

Purpose:
- Turn one incoming payment into: one CREDIT ledger entry, one Payment row,
  and per-order PaymentAllocation legs that move Order.paid_amount.

Hard rules:
- All-or-nothing: ledger entry + order updates + payment row commit together.
- Lock order is ALWAYS customer row -> order rows -> payment row.
- paid_amount never exceeds total; the excess is standing customer credit.
- Order-level payments are NOT auto-routed to other orders.
- Account-level payments are allocated FIFO: created_at ascending, ties on
  order_number. This policy mirrors "oldest invoice first" collection and
  must not change.
- A provider payment (provider, external_id) completes at most once.

Notes:
- Downstream notifications are registered with on_commit, so they only
  fire for settlements that actually committed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.utils import timezone

from common.exceptions import ConflictError, NotFoundError, StateError, ValidationError
from common.money import ZERO, money, positive_money
from customers.models import Customer
from customers.services.financials import recalculate_customer_financials
from ledger.models import LedgerEntry
from ledger.services.ledger_service import append_entry, lock_customer
from notifications.models import Notification
from notifications.services.dispatch import notify_after_commit
from orders.models import Order
from orders.services.order_lifecycle import (
    UNSETTLEABLE_STATES,
    can_transition,
    last_paid_transition,
    record_transition,
)
from payments.models import Payment, PaymentAllocation

logger = logging.getLogger(__name__)


# ============================================================
# RESULT TYPES
# ============================================================


@dataclass(frozen=True)
class OrderSettlement:
    order_id: object
    order_number: str
    amount_applied: Decimal
    previous_paid_amount: Decimal
    new_paid_amount: Decimal
    is_fully_paid: bool


@dataclass(frozen=True)
class SettlementResult:
    ledger_entry_id: object
    payment_id: object
    previous_balance: Decimal
    new_balance: Decimal
    applied_amount: Decimal
    unallocated_amount: Decimal
    orders_settled: list[OrderSettlement] = field(default_factory=list)


@dataclass(frozen=True)
class ReversalResult:
    ledger_entry_id: object
    payment_id: object
    previous_balance: Decimal
    new_balance: Decimal
    reversed_amount: Decimal
    orders_reverted: list[OrderSettlement] = field(default_factory=list)


# ============================================================
# HELPERS
# ============================================================


def payment_source_reference(payment: Payment) -> str:
    return f"{LedgerEntry.REF_PAYMENT}:{payment.pk}"


def _lock_order(order_id) -> Order:
    try:
        return Order.objects.select_for_update().get(pk=order_id)
    except (Order.DoesNotExist, DjangoValidationError, ValueError, TypeError) as exc:
        raise NotFoundError(f"Order {order_id} not found", code="ORDER_NOT_FOUND") from exc


def _claim_payment(
    *,
    customer,
    order,
    provider: str,
    external_id: str,
    amount: Decimal,
    method: str,
    provider_data: dict | None,
) -> Payment:
    """
    Return a locked, not-yet-completed Payment row for this settlement.

    Raises ConflictError if (provider, external_id) already completed.
    """
    external_id = str(external_id or "").strip()

    if external_id:
        existing = (
            Payment.objects.select_for_update()
            .filter(provider=provider, external_id=external_id)
            .first()
        )
        if existing is not None:
            if existing.status in (Payment.STATUS_COMPLETED, Payment.STATUS_REVERSED):
                raise ConflictError(
                    f"Payment {provider}:{external_id} was already applied",
                    code="PAYMENT_ALREADY_APPLIED",
                )
            existing.customer = customer
            existing.order = order
            existing.amount = amount
            existing.net_amount = amount - (existing.fee or ZERO)
            existing.method = method or existing.method
            existing.provider_data = {**(existing.provider_data or {}), **(provider_data or {})}
            existing.save()
            return existing

    try:
        with transaction.atomic():
            return Payment.objects.create(
                workspace_id=customer.workspace_id,
                customer=customer,
                order=order,
                provider=provider,
                external_id=external_id,
                method=method or Payment.METHOD_OTHER,
                status=Payment.STATUS_PENDING,
                amount=amount,
                provider_data=provider_data or {},
            )
    except IntegrityError as exc:
        raise ConflictError(
            f"Payment {provider}:{external_id} is being applied concurrently",
            code="PAYMENT_ALREADY_APPLIED",
        ) from exc


def _complete_payment(payment: Payment, *, ledger_entry_id) -> None:
    payment.status = Payment.STATUS_COMPLETED
    payment.ledger_entry_id = ledger_entry_id
    payment.completed_at = timezone.now()
    payment.save(update_fields=["status", "ledger_entry", "completed_at"])


def _flip_to_paid(order: Order, *, actor, source_reference: str) -> bool:
    if not can_transition(from_status=order.status, to_status=Order.STATUS_PAID):
        return False

    record_transition(
        order=order,
        target_status=Order.STATUS_PAID,
        actor=actor,
        reason="Fully paid",
        source_reference=source_reference,
    )
    notify_after_commit(
        workspace_id=order.workspace_id,
        kind=Notification.KIND_ORDER_PAID,
        title=f"Order {order.order_number} paid",
        entity_type="Order",
        entity_id=order.pk,
    )
    return True


def mark_paid_if_settled(*, order: Order, actor=None) -> bool:
    """
    Flip a LOCKED order that was fully paid before it could enter `paid`
    (draft / awaiting acceptance). The history row points at the payment
    whose allocation completed it, so a reversal of that payment undoes it.
    """
    if not order.is_fully_paid:
        return False

    allocation = (
        PaymentAllocation.objects.filter(order=order, payment__status=Payment.STATUS_COMPLETED)
        .select_related("payment")
        .order_by("-created_at")
        .first()
    )
    source_reference = payment_source_reference(allocation.payment) if allocation else ""
    return _flip_to_paid(order, actor=actor, source_reference=source_reference)


def _settle_order(
    order: Order,
    available: Decimal,
    *,
    payment: Payment,
    actor,
) -> OrderSettlement:
    """
    Apply up to `available` to a LOCKED order. Writes the allocation leg,
    stamps paid_at and flips status to paid when allowed.
    """
    previous_paid = money(order.paid_amount)
    applied = min(available, order.pending_amount)

    new_paid = previous_paid + applied
    order.paid_amount = new_paid

    fields = ["paid_amount", "updated_at"]
    fully_paid = order.is_fully_paid
    if fully_paid and not order.paid_at:
        order.paid_at = timezone.now()
        fields.append("paid_at")
    order.save(update_fields=fields)

    if applied > ZERO:
        PaymentAllocation.objects.create(payment=payment, order=order, amount=applied)

    if fully_paid:
        _flip_to_paid(order, actor=actor, source_reference=payment_source_reference(payment))

    return OrderSettlement(
        order_id=order.pk,
        order_number=order.order_number,
        amount_applied=applied,
        previous_paid_amount=previous_paid,
        new_paid_amount=new_paid,
        is_fully_paid=fully_paid,
    )


def _touch_last_payment(customer) -> None:
    customer.last_payment_at = timezone.now()
    customer.save(update_fields=["last_payment_at"])


def _notify_payment(*, customer, amount: Decimal, payment: Payment) -> None:
    notify_after_commit(
        workspace_id=customer.workspace_id,
        kind=Notification.KIND_PAYMENT_RECEIVED,
        title=f"Payment of {amount} received from {customer.name}",
        entity_type="Payment",
        entity_id=payment.pk,
        metadata={"provider": payment.provider, "customer_id": str(customer.pk)},
    )


# ============================================================
# ORDER-LEVEL SETTLEMENT
# ============================================================


@transaction.atomic
def apply_payment_to_order(
    *,
    customer_id,
    order_id,
    amount,
    reference_type: str = LedgerEntry.REF_PAYMENT,
    reference_id="",
    actor=None,
    provider: str = Payment.PROVIDER_MANUAL,
    external_id: str = "",
    method: str = Payment.METHOD_OTHER,
    provider_data: dict | None = None,
    description: str = "",
) -> SettlementResult:
    """
    Credit the full amount to the customer and apply it to ONE order.

    paid_amount is capped at total; the excess stays as standing credit
    and is never routed to other orders.
    """
    amt = positive_money(amount)

    customer = lock_customer(customer_id)
    order = _lock_order(order_id)

    if order.customer_id != customer.pk:
        raise ValidationError(
            f"Order {order.order_number} does not belong to customer {customer.pk}",
            code="ORDER_CUSTOMER_MISMATCH",
        )
    if order.deleted_at is not None or order.status in UNSETTLEABLE_STATES:
        raise StateError(
            f"Order {order.order_number} in status '{order.status}' cannot receive payments",
            code="ORDER_NOT_SETTLEABLE",
        )

    payment = _claim_payment(
        customer=customer,
        order=order,
        provider=provider,
        external_id=external_id,
        amount=amt,
        method=method,
        provider_data=provider_data,
    )

    appended = append_entry(
        customer_id=customer.pk,
        entry_type=LedgerEntry.CREDIT,
        amount=amt,
        reference_type=reference_type,
        reference_id=reference_id or payment.pk,
        actor=actor,
        description=description or f"Payment for order {order.order_number}",
        metadata={"payment_id": str(payment.pk), "order_id": str(order.pk)},
    )

    settlement = _settle_order(order, amt, payment=payment, actor=actor)
    _complete_payment(payment, ledger_entry_id=appended.entry_id)
    _touch_last_payment(customer)
    _notify_payment(customer=customer, amount=amt, payment=payment)
    recalculate_customer_financials(customer_id=customer.pk)

    logger.info(
        "Order payment settled",
        extra={
            "customer_id": str(customer.pk),
            "order_id": str(order.pk),
            "payment_id": str(payment.pk),
            "amount": str(amt),
            "applied": str(settlement.amount_applied),
        },
    )

    return SettlementResult(
        ledger_entry_id=appended.entry_id,
        payment_id=payment.pk,
        previous_balance=appended.previous_balance,
        new_balance=appended.new_balance,
        applied_amount=settlement.amount_applied,
        unallocated_amount=amt - settlement.amount_applied,
        orders_settled=[settlement],
    )


# ============================================================
# ACCOUNT-LEVEL SETTLEMENT (FIFO)
# ============================================================


def _debt_orders(customer_id):
    return (
        Order.objects.filter(customer_id=customer_id, deleted_at__isnull=True)
        .exclude(status__in=Order.NON_DEBT_STATUSES)
        .order_by("created_at", "order_number")
    )


def _fifo_candidates(customer_id):
    return _debt_orders(customer_id).select_for_update()


def _allocate_fifo(*, customer_id, amount: Decimal, payment: Payment, actor) -> list[OrderSettlement]:
    remaining = amount
    settled: list[OrderSettlement] = []

    for order in _fifo_candidates(customer_id):
        if remaining <= ZERO:
            break
        if order.pending_amount <= ZERO:
            continue

        settlement = _settle_order(order, remaining, payment=payment, actor=actor)
        remaining -= settlement.amount_applied
        settled.append(settlement)

    return settled


@transaction.atomic
def apply_payment(
    *,
    customer_id,
    amount,
    reference_type: str = LedgerEntry.REF_PAYMENT,
    reference_id="",
    actor=None,
    provider: str = Payment.PROVIDER_MANUAL,
    external_id: str = "",
    method: str = Payment.METHOD_OTHER,
    provider_data: dict | None = None,
    description: str = "",
) -> SettlementResult:
    """
    Credit the customer and greedily allocate across outstanding orders,
    oldest first. Whatever is left stays as standing credit.
    """
    amt = positive_money(amount)
    customer = lock_customer(customer_id)

    payment = _claim_payment(
        customer=customer,
        order=None,
        provider=provider,
        external_id=external_id,
        amount=amt,
        method=method,
        provider_data=provider_data,
    )

    appended = append_entry(
        customer_id=customer.pk,
        entry_type=LedgerEntry.CREDIT,
        amount=amt,
        reference_type=reference_type,
        reference_id=reference_id or payment.pk,
        actor=actor,
        description=description or "Account payment",
        metadata={"payment_id": str(payment.pk)},
    )

    settled = _allocate_fifo(customer_id=customer.pk, amount=amt, payment=payment, actor=actor)
    applied = sum((s.amount_applied for s in settled), ZERO)

    _complete_payment(payment, ledger_entry_id=appended.entry_id)
    _touch_last_payment(customer)
    _notify_payment(customer=customer, amount=amt, payment=payment)
    recalculate_customer_financials(customer_id=customer.pk)

    logger.info(
        "Account payment settled",
        extra={
            "customer_id": str(customer.pk),
            "payment_id": str(payment.pk),
            "amount": str(amt),
            "applied": str(applied),
            "orders": len(settled),
        },
    )

    return SettlementResult(
        ledger_entry_id=appended.entry_id,
        payment_id=payment.pk,
        previous_balance=appended.previous_balance,
        new_balance=appended.new_balance,
        applied_amount=applied,
        unallocated_amount=amt - applied,
        orders_settled=settled,
    )


# ============================================================
# STANDING CREDIT
# ============================================================


def _credit_held_by_drafts(customer_id) -> Decimal:
    # Paid against orders with no debit on the ledger; that money is theirs.
    held = Order.objects.filter(
        customer_id=customer_id,
        deleted_at__isnull=True,
        status__in=(Order.STATUS_DRAFT, Order.STATUS_TRASHED),
    ).aggregate(total=Sum("paid_amount"))["total"]
    return money(held)


def standing_credit(*, customer_id, balance=None, pending=None) -> Decimal:
    """
    Ledger credit that no outstanding order reflects yet.

    The balance already carries every debt-bearing order's full debit, so
    credit = pending on those orders - balance - what drafts hold.
    Money left on cancelled / returned orders counts: their debit was
    credited back in full.
    """
    if balance is None:
        balance = Customer.objects.values_list("current_balance", flat=True).get(pk=customer_id)
    if pending is None:
        pending = sum((o.pending_amount for o in _debt_orders(customer_id)), ZERO)

    credit = money(pending) - money(balance) - _credit_held_by_drafts(customer_id)
    return credit if credit > ZERO else ZERO


@transaction.atomic
def apply_standing_credit(*, customer_id, actor=None) -> SettlementResult:
    """
    Explicit admin sweep: route standing credit onto outstanding orders
    FIFO. No ledger entry is written (the credit is already there); the
    legs hang off a `credit` Payment row with no ledger entry of its own.
    Running it twice applies nothing the second time.
    """
    customer = lock_customer(customer_id)
    balance = money(customer.current_balance)

    pending = sum((o.pending_amount for o in _fifo_candidates(customer.pk)), ZERO)
    credit = standing_credit(customer_id=customer.pk, balance=balance, pending=pending)
    sweep = min(credit, pending)

    if sweep <= ZERO:
        logger.info(
            "No standing credit to sweep",
            extra={"customer_id": str(customer.pk), "credit": str(credit)},
        )
        return SettlementResult(
            ledger_entry_id=None,
            payment_id=None,
            previous_balance=balance,
            new_balance=balance,
            applied_amount=ZERO,
            unallocated_amount=credit,
            orders_settled=[],
        )

    payment = Payment.objects.create(
        workspace_id=customer.workspace_id,
        customer=customer,
        provider=Payment.PROVIDER_CREDIT,
        method=Payment.METHOD_OTHER,
        status=Payment.STATUS_COMPLETED,
        amount=sweep,
        completed_at=timezone.now(),
        provider_data={"balance": str(balance), "standing_credit": str(credit)},
    )
    settled = _allocate_fifo(customer_id=customer.pk, amount=sweep, payment=payment, actor=actor)
    applied = sum((s.amount_applied for s in settled), ZERO)
    recalculate_customer_financials(customer_id=customer.pk)

    logger.info(
        "Standing credit swept",
        extra={
            "customer_id": str(customer.pk),
            "payment_id": str(payment.pk),
            "applied": str(applied),
        },
    )

    return SettlementResult(
        ledger_entry_id=None,
        payment_id=payment.pk,
        previous_balance=balance,
        new_balance=balance,
        applied_amount=applied,
        unallocated_amount=credit - applied,
        orders_settled=settled,
    )


# ============================================================
# REVERSAL
# ============================================================


@transaction.atomic
def reverse_payment(
    *,
    payment_id,
    reference_type: str = LedgerEntry.REF_RECEIPT_REVERSAL,
    reference_id="",
    actor=None,
    reason: str = "",
) -> ReversalResult:
    """
    Undo a completed payment:
    - DEBIT the customer by the full payment amount
    - take every allocation leg back off its order (paid_amount floored at 0)
    - revert a paid flip caused by this payment to the status before it
    - mark the payment reversed
    """
    try:
        customer_id = Payment.objects.values_list("customer_id", flat=True).get(pk=payment_id)
    except (Payment.DoesNotExist, DjangoValidationError, ValueError, TypeError) as exc:
        raise NotFoundError(f"Payment {payment_id} not found", code="PAYMENT_NOT_FOUND") from exc

    lock_customer(customer_id)
    payment = Payment.objects.select_for_update().get(pk=payment_id)

    if payment.status != Payment.STATUS_COMPLETED or payment.provider == Payment.PROVIDER_CREDIT:
        raise StateError(
            f"Payment {payment.pk} in status '{payment.status}' cannot be reversed",
            code="PAYMENT_NOT_REVERSIBLE",
        )

    appended = append_entry(
        customer_id=customer_id,
        entry_type=LedgerEntry.DEBIT,
        amount=payment.amount,
        reference_type=reference_type,
        reference_id=reference_id or payment.pk,
        actor=actor,
        description=(reason or f"Reversal of payment {payment.pk}")[:255],
        metadata={"payment_id": str(payment.pk)},
    )

    source_reference = payment_source_reference(payment)
    reverted: list[OrderSettlement] = []

    allocations = PaymentAllocation.objects.filter(payment=payment).order_by("created_at")
    for allocation in allocations:
        order = _lock_order(allocation.order_id)
        previous_paid = money(order.paid_amount)
        new_paid = max(previous_paid - money(allocation.amount), ZERO)

        order.paid_amount = new_paid
        fields = ["paid_amount", "updated_at"]
        if new_paid < money(order.total) and order.paid_at:
            order.paid_at = None
            fields.append("paid_at")
        order.save(update_fields=fields)

        if order.status == Order.STATUS_PAID and new_paid < money(order.total):
            flip = last_paid_transition(order)
            if flip is not None and flip.source_reference == source_reference:
                record_transition(
                    order=order,
                    target_status=flip.previous_status,
                    actor=actor,
                    reason="Payment reversed",
                    source_reference=source_reference,
                    validate=False,
                )

        reverted.append(
            OrderSettlement(
                order_id=order.pk,
                order_number=order.order_number,
                amount_applied=-(previous_paid - new_paid),
                previous_paid_amount=previous_paid,
                new_paid_amount=new_paid,
                is_fully_paid=order.is_fully_paid,
            )
        )

    payment.status = Payment.STATUS_REVERSED
    payment.reversed_at = timezone.now()
    payment.save(update_fields=["status", "reversed_at"])
    recalculate_customer_financials(customer_id=customer_id)

    logger.info(
        "Payment reversed",
        extra={
            "payment_id": str(payment.pk),
            "customer_id": str(customer_id),
            "amount": str(payment.amount),
            "orders": len(reverted),
        },
    )

    return ReversalResult(
        ledger_entry_id=appended.entry_id,
        payment_id=payment.pk,
        previous_balance=appended.previous_balance,
        new_balance=appended.new_balance,
        reversed_amount=money(payment.amount),
        orders_reverted=reverted,
    )
