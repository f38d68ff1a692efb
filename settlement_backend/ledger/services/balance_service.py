# ledger/services/balance_service.py

"""
CUSTOMER BALANCE SERVICE (AUTHORITATIVE, READ-ONLY)

RULES:
- READ-ONLY: no writes, ever
- LedgerEntry is the single source of truth
- Customer.current_balance is a cache that must equal:
      sum(debit amounts) - sum(credit amounts)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.db.models import Case, DecimalField, F, Sum, Value, When
from django.db.models.functions import Coalesce

from customers.models import Customer
from ledger.models import LedgerEntry

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")


def _q2(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class BalanceCheck:
    customer_id: object
    cached_balance: Decimal
    ledger_balance: Decimal

    @property
    def is_consistent(self) -> bool:
        return self.cached_balance == self.ledger_balance

    @property
    def drift(self) -> Decimal:
        return self.cached_balance - self.ledger_balance


def _signed_sums(qs) -> dict:
    zero = Value(Decimal("0.00"), output_field=DecimalField(max_digits=14, decimal_places=2))
    return qs.aggregate(
        debits=Coalesce(
            Sum(Case(When(entry_type=LedgerEntry.DEBIT, then=F("amount")))),
            zero,
        ),
        credits=Coalesce(
            Sum(Case(When(entry_type=LedgerEntry.CREDIT, then=F("amount")))),
            zero,
        ),
    )


def ledger_balance(customer_id) -> Decimal:
    """Recompute the balance from scratch (debits - credits)."""
    sums = _signed_sums(LedgerEntry.objects.filter(customer_id=customer_id))
    return _q2(sums["debits"]) - _q2(sums["credits"])


def verify_customer_balance(customer: Customer) -> BalanceCheck:
    cached = _q2(
        Customer.objects.filter(pk=customer.pk)
        .values_list("current_balance", flat=True)
        .first()
    )
    check = BalanceCheck(
        customer_id=customer.pk,
        cached_balance=cached,
        ledger_balance=ledger_balance(customer.pk),
    )
    if not check.is_consistent:
        logger.error(
            "Customer balance drift detected",
            extra={
                "customer_id": str(customer.pk),
                "cached": str(check.cached_balance),
                "ledger": str(check.ledger_balance),
            },
        )
    return check


def iter_balance_mismatches(*, workspace=None):
    qs = Customer.objects.all().order_by("id")
    if workspace is not None:
        qs = qs.filter(workspace=workspace)

    for customer in qs.iterator():
        check = verify_customer_balance(customer)
        if not check.is_consistent:
            yield check
