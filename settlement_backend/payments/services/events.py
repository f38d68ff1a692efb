# payments/services/events.py

"""
Provider-neutral payment events.

Each provider adapter turns a raw notification into exactly one of these.
Everything downstream (processor, receipt intake) only sees this union.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Union


@dataclass(frozen=True)
class PaymentApproved:
    provider: str
    external_id: str
    amount: Decimal
    currency: str = ""
    order_id: str | None = None
    customer_id: str | None = None
    method: str = "other"
    fee: Decimal = Decimal("0.00")
    raw: dict = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentPending:
    provider: str
    external_id: str
    status: str


@dataclass(frozen=True)
class PaymentFailed:
    provider: str
    external_id: str
    status: str
    reason: str = ""


@dataclass(frozen=True)
class PaymentIgnored:
    provider: str
    reason: str


NormalizedPaymentEvent = Union[PaymentApproved, PaymentPending, PaymentFailed, PaymentIgnored]
