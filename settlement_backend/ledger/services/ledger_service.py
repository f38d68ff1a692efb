# ledger/services/ledger_service.py

"""
======================================================
PATH: ledger/services/ledger_service.py
======================================================
CUSTOMER LEDGER SERVICE (LEDGER STORE)

This module is the ONLY place allowed to:
- Create LedgerEntry rows
- Write Customer.current_balance

Sign convention (never inferred, always passed explicitly):
- DEBIT  increases what the customer owes
- CREDIT decreases what the customer owes

Every append locks the customer row (select_for_update) so concurrent
appends for the same customer serialize and balance_after is exact.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction

from common.exceptions import NotFoundError, ValidationError
from common.money import ZERO, money, positive_money
from customers.models import Customer
from ledger.models import LedgerEntry
from ledger.services.balance_service import BalanceCheck, verify_customer_balance

logger = logging.getLogger(__name__)

VALID_ENTRY_TYPES = {LedgerEntry.DEBIT, LedgerEntry.CREDIT}
VALID_REFERENCE_TYPES = {value for value, _ in LedgerEntry.REFERENCE_TYPES}


@dataclass(frozen=True)
class AppendResult:
    entry_id: object
    previous_balance: Decimal
    new_balance: Decimal


def actor_label(actor) -> str:
    """Audit label for whoever triggered a write (user, service name, None)."""
    if actor is None:
        return "system"
    get_username = getattr(actor, "get_username", None)
    if callable(get_username):
        return str(get_username() or "user")[:150]
    return str(actor)[:150] or "system"


def lock_customer(customer_id) -> Customer:
    try:
        return (
            Customer.objects.select_for_update()
            .select_related("workspace")
            .get(pk=customer_id)
        )
    except (Customer.DoesNotExist, DjangoValidationError, ValueError, TypeError) as exc:
        raise NotFoundError(
            f"Customer {customer_id} not found", code="CUSTOMER_NOT_FOUND"
        ) from exc


def _normalize_entry_type(entry_type) -> str:
    et = str(entry_type or "").strip().lower()
    if et not in VALID_ENTRY_TYPES:
        raise ValidationError(f"Invalid entry_type: {entry_type!r}", code="INVALID_ENTRY_TYPE")
    return et


def _normalize_reference_type(reference_type) -> str:
    rt = str(reference_type or "").strip()
    if rt not in VALID_REFERENCE_TYPES:
        raise ValidationError(
            f"Invalid reference_type: {reference_type!r}", code="INVALID_REFERENCE_TYPE"
        )
    return rt


@transaction.atomic
def append_entry(
    *,
    customer_id,
    entry_type: str,
    amount,
    reference_type: str,
    reference_id="",
    actor=None,
    description: str = "",
    metadata: dict | None = None,
) -> AppendResult:
    """
    Append one immutable entry and move the cached balance with it.

    Raises:
    - ValidationError: amount <= 0, unknown entry/reference type
    - NotFoundError: customer does not exist
    """
    et = _normalize_entry_type(entry_type)
    amt = positive_money(amount)
    rt = _normalize_reference_type(reference_type)

    customer = lock_customer(customer_id)

    previous = money(customer.current_balance)
    new_balance = previous + amt if et == LedgerEntry.DEBIT else previous - amt

    currency = getattr(customer.workspace, "currency", "") or settings.LEDGER_CURRENCY

    entry = LedgerEntry.objects.create(
        workspace_id=customer.workspace_id,
        customer=customer,
        entry_type=et,
        amount=amt,
        balance_after=new_balance,
        currency=currency,
        reference_type=rt,
        reference_id=str(reference_id or ""),
        description=(description or "")[:255],
        metadata=metadata or {},
        created_by=actor_label(actor),
    )

    customer.current_balance = new_balance
    customer.save(update_fields=["current_balance", "updated_at"])

    logger.info(
        "Ledger entry appended",
        extra={
            "customer_id": str(customer.pk),
            "entry_id": str(entry.pk),
            "entry_type": et,
            "amount": str(amt),
            "reference": f"{rt}:{reference_id}",
            "balance_after": str(new_balance),
        },
    )

    return AppendResult(entry_id=entry.pk, previous_balance=previous, new_balance=new_balance)


# ======================================================
# ORDER DEBT
# ======================================================


@transaction.atomic
def create_order_debit(*, order, actor=None) -> AppendResult | None:
    """
    Post the order's total as customer debt. Idempotent via order.debit_posted.
    """
    from orders.models import Order

    # Lock order: customer first, then order (same as the settlement engine).
    lock_customer(order.customer_id)
    locked = Order.objects.select_for_update().get(pk=order.pk)
    if locked.debit_posted:
        return None

    if money(locked.total) <= ZERO:
        return None

    result = append_entry(
        customer_id=locked.customer_id,
        entry_type=LedgerEntry.DEBIT,
        amount=locked.total,
        reference_type=LedgerEntry.REF_ORDER,
        reference_id=str(locked.pk),
        actor=actor,
        description=f"Order {locked.order_number}",
    )

    locked.debit_posted = True
    locked.save(update_fields=["debit_posted", "updated_at"])
    order.debit_posted = True
    return result


@transaction.atomic
def reverse_order_debit(*, order, actor=None, reason: str = "") -> AppendResult | None:
    """
    Credit back an order's posted debit (cancellation / return).

    Money already paid against the order stays on the ledger and becomes
    standing credit.
    """
    from orders.models import Order

    # Lock order: customer first, then order (same as the settlement engine).
    lock_customer(order.customer_id)
    locked = Order.objects.select_for_update().get(pk=order.pk)
    if not locked.debit_posted or money(locked.total) <= ZERO:
        return None

    result = append_entry(
        customer_id=locked.customer_id,
        entry_type=LedgerEntry.CREDIT,
        amount=locked.total,
        reference_type=LedgerEntry.REF_ORDER_CANCELLATION,
        reference_id=str(locked.pk),
        actor=actor,
        description=f"Order {locked.order_number} {reason or 'cancelled'}"[:255],
    )

    locked.debit_posted = False
    locked.save(update_fields=["debit_posted", "updated_at"])
    order.debit_posted = False
    return result


# ======================================================
# MANUAL CORRECTIONS
# ======================================================


def create_adjustment(
    *, customer_id, entry_type: str, amount, reason: str, actor=None
) -> AppendResult:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Adjustment reason is required", code="REASON_REQUIRED")

    return append_entry(
        customer_id=customer_id,
        entry_type=entry_type,
        amount=amount,
        reference_type=LedgerEntry.REF_ADJUSTMENT,
        reference_id="",
        actor=actor,
        description=reason,
    )


@transaction.atomic
def write_off_debt(*, customer_id, amount=None, reason: str = "", actor=None) -> AppendResult:
    """
    Forgive debt with a credit entry, capped at the current debt.
    amount=None writes off everything owed.
    """
    customer = lock_customer(customer_id)
    debt = money(customer.current_balance)
    if debt <= ZERO:
        raise ValidationError("Customer has no debt to write off", code="NO_DEBT")

    requested = debt if amount in (None, "") else positive_money(amount)
    amt = min(requested, debt)

    return append_entry(
        customer_id=customer.pk,
        entry_type=LedgerEntry.CREDIT,
        amount=amt,
        reference_type=LedgerEntry.REF_WRITE_OFF,
        reference_id="",
        actor=actor,
        description=(reason or "Debt write-off").strip(),
    )


# ======================================================
# READS
# ======================================================


def get_customer_balance(*, customer_id) -> dict:
    try:
        balance = money(
            Customer.objects.values_list("current_balance", flat=True).get(pk=customer_id)
        )
    except (Customer.DoesNotExist, DjangoValidationError, ValueError, TypeError) as exc:
        raise NotFoundError(
            f"Customer {customer_id} not found", code="CUSTOMER_NOT_FOUND"
        ) from exc

    return {
        "customer_id": str(customer_id),
        "balance": balance,
        "has_debt": balance > ZERO,
        "has_credit_balance": balance < ZERO,
    }


def get_ledger_history(*, customer_id, entry_type: str | None = None, limit: int = 50, offset: int = 0):
    if not Customer.objects.filter(pk=customer_id).exists():
        raise NotFoundError(f"Customer {customer_id} not found", code="CUSTOMER_NOT_FOUND")

    qs = LedgerEntry.objects.filter(customer_id=customer_id)
    if entry_type:
        qs = qs.filter(entry_type=_normalize_entry_type(entry_type))

    limit = max(1, min(int(limit or 50), 200))
    offset = max(0, int(offset or 0))

    total = qs.count()
    entries = list(qs.order_by("-created_at", "-id")[offset : offset + limit])
    return {"count": total, "limit": limit, "offset": offset, "results": entries}


def get_debt_summary(*, customer_id, recent_payments: int = 5) -> dict:
    from orders.models import Order
    from payments.models import Payment

    balance = get_customer_balance(customer_id=customer_id)

    unpaid = [
        o
        for o in Order.objects.filter(customer_id=customer_id, deleted_at__isnull=True)
        .exclude(status__in=Order.NON_DEBT_STATUSES)
        .order_by("created_at", "order_number")
        if o.pending_amount > ZERO
    ]

    payments = list(
        Payment.objects.filter(customer_id=customer_id, status=Payment.STATUS_COMPLETED)
        .exclude(provider=Payment.PROVIDER_CREDIT)
        .order_by("-completed_at")[:recent_payments]
    )

    return {
        **balance,
        "unpaid_orders": unpaid,
        "total_pending": sum((o.pending_amount for o in unpaid), ZERO),
        "recent_payments": payments,
    }


# ======================================================
# REPAIR
# ======================================================


@transaction.atomic
def recompute_balance_from_ledger(*, customer_id) -> BalanceCheck:
    """
    Reset the cached balance to the ledger sum. Admin repair only; the
    drift is logged before it is overwritten.
    """
    customer = lock_customer(customer_id)
    check = verify_customer_balance(customer)
    if not check.is_consistent:
        customer.current_balance = check.ledger_balance
        customer.save(update_fields=["current_balance", "updated_at"])
        logger.warning(
            "Customer balance rebuilt from ledger",
            extra={
                "customer_id": str(customer.pk),
                "previous": str(check.cached_balance),
                "ledger": str(check.ledger_balance),
            },
        )
    return check
