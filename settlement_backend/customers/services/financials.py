# customers/services/financials.py

"""
CUSTOMER FINANCIAL STATS

Derived, recomputable numbers shown next to a customer:
order_count, total_spent, last_order_at, payment_score.

current_balance is NOT touched here. It belongs to the ledger; we only
compare it against the ledger sum and log drift.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from django.db.models import Count, Max, Sum

from common.exceptions import NotFoundError
from common.money import ZERO, money
from customers.models import Customer
from ledger.services.balance_service import verify_customer_balance

logger = logging.getLogger(__name__)

SCORE_MAX = 100
SCORE_MIN = 0

SCORE_LABELS = (
    (80, "excellent"),
    (60, "good"),
    (40, "fair"),
    (20, "poor"),
)


def get_score_label(score: int) -> str:
    for threshold, label in SCORE_LABELS:
        if score >= threshold:
            return label
    return "critical"


def calculate_payment_score(
    *,
    debt: Decimal,
    reminder_count: int,
    paid_orders: int,
    total_orders: int,
) -> int:
    """
    100
      - min(debt / 1000, 40)
      - min(reminders * 5, 20)
      - (1 - paid_ratio) * 20
      + min(paid_orders, 10)
    clamped to 0..100. Orders only count once they bear debt.
    """
    score = Decimal(SCORE_MAX)

    debt = money(debt)
    if debt > ZERO:
        score -= min(debt / Decimal("1000"), Decimal("40"))

    score -= min(Decimal(max(reminder_count, 0) * 5), Decimal("20"))

    if total_orders > 0:
        paid_ratio = Decimal(paid_orders) / Decimal(total_orders)
        score -= (Decimal("1") - paid_ratio) * Decimal("20")

    score += min(Decimal(max(paid_orders, 0)), Decimal("10"))

    return int(max(Decimal(SCORE_MIN), min(Decimal(SCORE_MAX), score)))


def recalculate_customer_financials(*, customer_id) -> Customer:
    from orders.models import Order

    customer = Customer.objects.filter(pk=customer_id).first()
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found", code="CUSTOMER_NOT_FOUND")

    debt_orders = Order.objects.filter(
        customer_id=customer.pk, deleted_at__isnull=True
    ).exclude(status__in=Order.NON_DEBT_STATUSES)

    stats = debt_orders.aggregate(
        order_count=Count("id"),
        total_spent=Sum("total"),
        last_order_at=Max("created_at"),
    )
    total_orders = stats["order_count"] or 0
    paid_orders = sum(1 for order in debt_orders.only("total", "paid_amount") if order.is_fully_paid)

    # Balance cache is compared, never rewritten, from here.
    check = verify_customer_balance(customer)

    customer.order_count = total_orders
    customer.total_spent = money(stats["total_spent"])
    customer.last_order_at = stats["last_order_at"]
    customer.payment_score = calculate_payment_score(
        debt=check.ledger_balance,
        reminder_count=customer.debt_reminder_count,
        paid_orders=paid_orders,
        total_orders=total_orders,
    )
    customer.save(
        update_fields=[
            "order_count",
            "total_spent",
            "last_order_at",
            "payment_score",
            "updated_at",
        ]
    )
    return customer
