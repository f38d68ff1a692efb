# payments/services/adapters/mercadopago.py

"""
MERCADOPAGO WEBHOOK ADAPTER

Signature (x-signature: "ts=<ts>,v1=<hex>"):
    manifest = "id:<data.id>;request-id:<x-request-id>;ts:<ts>;"
    v1       = HMAC-SHA256(webhook_secret, manifest)

The notification body only carries ids; the worker fetches the payment
to learn status, amount and external_reference.
"""

from __future__ import annotations

import hashlib
import hmac
from decimal import Decimal

from common.money import ZERO, money
from payments.models import Payment
from payments.services.adapters.base import InboxKey, parse_external_reference
from payments.services.clients import MercadoPagoClient, payments_cfg
from payments.services.events import (
    PaymentApproved,
    PaymentFailed,
    PaymentIgnored,
    PaymentPending,
)

APPROVED = {"approved"}
PENDING = {"pending", "in_process", "authorized"}
REJECTED = {"rejected"}
CANCELLED = {"cancelled", "refunded", "charged_back"}

PAYMENT_TYPE_METHODS = {
    "credit_card": Payment.METHOD_CARD,
    "debit_card": Payment.METHOD_CARD,
    "prepaid_card": Payment.METHOD_CARD,
    "bank_transfer": Payment.METHOD_TRANSFER,
    "account_money": Payment.METHOD_TRANSFER,
    "ticket": Payment.METHOD_CASH,
    "atm": Payment.METHOD_CASH,
}


def _parse_signature_header(value: str) -> tuple[str, str]:
    ts = v1 = ""
    for part in (value or "").split(","):
        key, _, val = part.strip().partition("=")
        if key == "ts":
            ts = val.strip()
        elif key == "v1":
            v1 = val.strip()
    return ts, v1


def _data_id(payload: dict | None, query: dict | None) -> str:
    query = query or {}
    data_id = query.get("data.id") or query.get("id") or ""
    if not data_id and isinstance(payload, dict):
        data_id = (payload.get("data") or {}).get("id") or ""
    data_id = str(data_id).strip()
    # MercadoPago signs alphanumeric ids lowercased.
    return data_id.lower() if data_id.isalnum() else data_id


class MercadoPagoAdapter:
    provider = Payment.PROVIDER_MERCADOPAGO
    signature_header = "x-signature"

    def __init__(self, *, secret: str | None = None, client: MercadoPagoClient | None = None):
        self.secret = (secret or payments_cfg("MERCADOPAGO").get("WEBHOOK_SECRET") or "").strip()
        self.client = client

    def verify_signature(self, *, headers, raw_body: bytes, payload, query) -> bool:
        header = headers.get(self.signature_header) or ""
        ts, v1 = _parse_signature_header(header)
        data_id = _data_id(payload, query)
        if not (self.secret and ts and v1 and data_id):
            return False

        request_id = headers.get("x-request-id") or ""
        manifest = f"id:{data_id};request-id:{request_id};ts:{ts};"
        expected = hmac.new(
            self.secret.encode("utf-8"), manifest.encode("utf-8"), hashlib.sha256
        ).hexdigest()
        return hmac.compare_digest(expected, v1)

    def inbox_key(self, payload: dict, query=None) -> InboxKey:
        action = str(payload.get("action") or payload.get("type") or "")
        notification_id = str(payload.get("id") or "").strip()
        if not notification_id:
            notification_id = f"{_data_id(payload, query)}:{action}"
        return InboxKey(external_id=notification_id, event_type=action)

    def normalize(self, *, workspace_id, payload: dict):
        if str(payload.get("type") or "") != "payment":
            return PaymentIgnored(
                provider=self.provider,
                reason=f"Unhandled notification type '{payload.get('type')}'",
            )

        payment_id = _data_id(payload, None)
        if not payment_id:
            return PaymentIgnored(provider=self.provider, reason="Notification without data.id")

        client = self.client or MercadoPagoClient()
        data = client.get_payment(payment_id)

        status = str(data.get("status") or "").lower()
        external_id = str(data.get("id") or payment_id)

        if status in PENDING:
            return PaymentPending(provider=self.provider, external_id=external_id, status=status)
        if status in REJECTED or status in CANCELLED:
            return PaymentFailed(
                provider=self.provider,
                external_id=external_id,
                status=status,
                reason=str(data.get("status_detail") or ""),
            )
        if status not in APPROVED:
            return PaymentIgnored(provider=self.provider, reason=f"Unknown status '{status}'")

        order_id, customer_id = parse_external_reference(
            data.get("external_reference") or "", workspace_id=workspace_id
        )
        fee = sum(
            (money(f.get("amount")) for f in (data.get("fee_details") or []) if isinstance(f, dict)),
            ZERO,
        )

        return PaymentApproved(
            provider=self.provider,
            external_id=external_id,
            amount=money(Decimal(str(data.get("transaction_amount") or "0"))),
            currency=str(data.get("currency_id") or ""),
            order_id=order_id,
            customer_id=customer_id,
            method=PAYMENT_TYPE_METHODS.get(
                str(data.get("payment_type_id") or ""), Payment.METHOD_OTHER
            ),
            fee=fee,
            raw={
                "status": status,
                "status_detail": data.get("status_detail"),
                "payment_method_id": data.get("payment_method_id"),
                "payer_email": (data.get("payer") or {}).get("email"),
            },
        )
