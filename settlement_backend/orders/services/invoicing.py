# orders/services/invoicing.py

"""
INVOICE AUTHORIZATION

Flow:
1) order -> pending_invoicing (short transaction, validated transition)
2) call the tax authority OUTSIDE any transaction (bounded timeout)
3) record the outcome and move to invoiced / invoice_cancelled

A collaborator failure leaves the order in pending_invoicing so it can be
retried. No ledger rows are written here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from django.conf import settings
from django.db import transaction
from django.utils.dateparse import parse_datetime

from common.exceptions import DependencyError, NotFoundError, StateError
from common.http import request_json
from ledger.services.ledger_service import actor_label
from orders.models import InvoiceRecord, Order
from orders.services.order_lifecycle import record_transition
from orders.services.order_service import change_status, lock_order_with_customer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvoiceAuthorization:
    approved: bool
    invoice_number: str = ""
    authorization_code: str = ""
    authorization_expires_at: datetime | None = None
    rejection_reason: str = ""
    raw: dict = field(default_factory=dict)


class TaxAuthorityClient:
    """Requests an electronic invoice authorization for an order."""

    def __init__(self, *, url: str | None = None, timeout: float | None = None):
        cfg = (getattr(settings, "COLLABORATORS", {}) or {}).get("TAX_AUTHORITY") or {}
        self.url = (url or cfg.get("URL") or "").strip()
        self.timeout = timeout or cfg.get("TIMEOUT_SECONDS") or 15

    def _payload(self, order: Order) -> dict:
        customer = order.customer
        return {
            "order_number": order.order_number,
            "customer_name": customer.name,
            "customer_tax_id": customer.tax_id,
            "subtotal": str(order.subtotal),
            "tax": str(order.tax),
            "total": str(order.total),
            "currency": getattr(settings, "LEDGER_CURRENCY", "ARS"),
            "items": [
                {
                    "description": item.product_name,
                    "quantity": item.quantity,
                    "unit_price": str(item.unit_price),
                }
                for item in order.items.all()
            ],
        }

    def authorize(self, order: Order) -> InvoiceAuthorization:
        if not self.url:
            raise DependencyError(
                "Tax authority URL is not configured", code="TAX_AUTHORITY_UNCONFIGURED"
            )

        data = request_json(
            "POST",
            self.url,
            service="Tax authority",
            body=self._payload(order),
            timeout=self.timeout,
        )

        approved = str(data.get("result") or data.get("status") or "").lower() in (
            "approved",
            "a",
            "ok",
        )
        expires = data.get("authorization_expires_at") or data.get("cae_expires_at")
        return InvoiceAuthorization(
            approved=approved,
            invoice_number=str(data.get("invoice_number") or ""),
            authorization_code=str(data.get("authorization_code") or data.get("cae") or ""),
            authorization_expires_at=parse_datetime(expires) if isinstance(expires, str) else None,
            rejection_reason=str(data.get("message") or data.get("observations") or ""),
            raw=data,
        )


def request_invoice(*, order_id, client: TaxAuthorityClient | None = None, actor=None) -> InvoiceRecord:
    client = client or TaxAuthorityClient()

    order = Order.objects.select_related("customer").filter(pk=order_id).first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", code="ORDER_NOT_FOUND")
    if order.status != Order.STATUS_PENDING_INVOICING:
        order = change_status(
            order_id=order.pk,
            target_status=Order.STATUS_PENDING_INVOICING,
            actor=actor,
            reason="Invoice requested",
        )

    try:
        auth = client.authorize(order)
    except DependencyError:
        logger.exception(
            "Tax authority call failed; order left in pending_invoicing",
            extra={"order_id": str(order.pk), "order_number": order.order_number},
        )
        raise

    with transaction.atomic():
        locked = lock_order_with_customer(order.pk)
        if locked.status != Order.STATUS_PENDING_INVOICING:
            raise StateError(
                f"Order {locked.order_number} left pending_invoicing during authorization",
                code="ORDER_STATE_CHANGED",
            )

        record = InvoiceRecord.objects.create(
            order=locked,
            status=InvoiceRecord.STATUS_APPROVED if auth.approved else InvoiceRecord.STATUS_REJECTED,
            invoice_number=auth.invoice_number[:64],
            authorization_code=auth.authorization_code[:64],
            authorization_expires_at=auth.authorization_expires_at,
            raw_response=auth.raw,
            requested_by=actor_label(actor),
        )

        record_transition(
            order=locked,
            target_status=(
                Order.STATUS_INVOICED if auth.approved else Order.STATUS_INVOICE_CANCELLED
            ),
            actor=actor,
            reason=(
                f"Invoice {auth.invoice_number}" if auth.approved
                else (auth.rejection_reason or "Rejected by tax authority")
            ),
            source_reference=f"InvoiceRecord:{record.pk}",
        )

    logger.info(
        "Invoice authorization recorded",
        extra={
            "order_id": str(order.pk),
            "approved": auth.approved,
            "invoice_number": auth.invoice_number,
        },
    )
    return record
