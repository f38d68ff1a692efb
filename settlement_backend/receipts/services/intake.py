# receipts/services/intake.py

"""
RECEIPT INTAKE / EVIDENCE NORMALIZATION

Three ways money evidence reaches us:
- manual   : staff types an amount
- vision   : an uploaded file, amount read by the vision collaborator
- webhook  : a provider confirmed a payment

All three become a PaymentEvidence, and settle_evidence is the single
door into the settlement engine for them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from common.exceptions import ValidationError
from common.money import cents_to_money, money
from customers.models import Customer
from ledger.models import LedgerEntry
from ledger.services.settlement import SettlementResult, apply_payment, apply_payment_to_order
from orders.models import Order
from payments.models import Payment

KIND_MANUAL = "manual"
KIND_VISION = "vision"
KIND_WEBHOOK = "webhook"

FULL_CONFIDENCE = Decimal("1.000")


@dataclass(frozen=True)
class PaymentEvidence:
    kind: str
    amount: Decimal | None
    confidence: Decimal | None
    source_type: str
    source_id: str
    order_id: object = None
    customer_id: object = None
    method: str = Payment.METHOD_OTHER
    provider: str = Payment.PROVIDER_MANUAL
    external_id: str = ""
    provider_data: dict = field(default_factory=dict)


def resolve_amount(*, declared=None, extracted=None) -> Decimal | None:
    """Declared always wins; extracted is only a fallback."""
    if declared not in (None, ""):
        return money(declared)
    if extracted not in (None, ""):
        return money(extracted)
    return None


def from_manual(
    *,
    amount,
    source_type: str = LedgerEntry.REF_PAYMENT,
    source_id: str = "",
    order_id=None,
    customer_id=None,
    method: str = Payment.METHOD_CASH,
) -> PaymentEvidence:
    return PaymentEvidence(
        kind=KIND_MANUAL,
        amount=money(amount),
        confidence=FULL_CONFIDENCE,
        source_type=source_type,
        source_id=str(source_id or ""),
        order_id=order_id,
        customer_id=customer_id,
        method=method,
        provider=Payment.PROVIDER_MANUAL,
    )


def from_vision(
    *,
    extraction,
    declared_amount=None,
    source_id: str,
    order_id=None,
    customer_id=None,
    method: str = Payment.METHOD_TRANSFER,
) -> PaymentEvidence:
    extracted = None
    confidence = None
    if extraction is not None:
        confidence = extraction.confidence
        if extraction.amount_cents is not None:
            extracted = cents_to_money(extraction.amount_cents)

    if declared_amount not in (None, ""):
        confidence = FULL_CONFIDENCE

    return PaymentEvidence(
        kind=KIND_VISION,
        amount=resolve_amount(declared=declared_amount, extracted=extracted),
        confidence=confidence,
        source_type=LedgerEntry.REF_RECEIPT,
        source_id=str(source_id),
        order_id=order_id,
        customer_id=customer_id,
        method=method or Payment.METHOD_TRANSFER,
        provider=Payment.PROVIDER_RECEIPT,
        external_id=str(source_id),
    )


def from_webhook(event) -> PaymentEvidence:
    """event is a payments.services.events.PaymentApproved."""
    return PaymentEvidence(
        kind=KIND_WEBHOOK,
        amount=money(event.amount),
        confidence=FULL_CONFIDENCE,
        source_type=LedgerEntry.REF_PAYMENT,
        source_id=event.external_id,
        order_id=event.order_id,
        customer_id=event.customer_id,
        method=event.method,
        provider=event.provider,
        external_id=event.external_id,
        provider_data={**(event.raw or {}), "currency": event.currency, "fee": str(event.fee)},
    )


def settle_evidence(
    evidence: PaymentEvidence,
    *,
    workspace_id,
    actor=None,
    reference_type: str | None = None,
    reference_id: str = "",
    description: str = "",
) -> SettlementResult:
    """
    Order-level settlement when the evidence names an order, FIFO across the
    customer's open orders otherwise.
    """
    if evidence.amount is None:
        raise ValidationError("Evidence has no amount to apply", code="AMOUNT_REQUIRED")

    kwargs = {
        "amount": evidence.amount,
        "reference_type": reference_type or evidence.source_type,
        "reference_id": reference_id,
        "actor": actor,
        "provider": evidence.provider,
        "external_id": evidence.external_id,
        "method": evidence.method,
        "provider_data": evidence.provider_data,
        "description": description,
    }

    if evidence.order_id:
        order = Order.objects.filter(pk=evidence.order_id, workspace_id=workspace_id).first()
        if order is None:
            raise ValidationError(
                f"Order {evidence.order_id} not found in workspace", code="ORDER_NOT_FOUND"
            )
        customer_id = evidence.customer_id or order.customer_id
        return apply_payment_to_order(customer_id=customer_id, order_id=order.pk, **kwargs)

    if not evidence.customer_id:
        raise ValidationError(
            "Evidence names neither an order nor a customer", code="INVALID_REFERENCE"
        )

    if not Customer.objects.filter(pk=evidence.customer_id, workspace_id=workspace_id).exists():
        raise ValidationError(
            f"Customer {evidence.customer_id} not found in workspace",
            code="CUSTOMER_NOT_FOUND",
        )
    return apply_payment(customer_id=evidence.customer_id, **kwargs)
