# payments/services/adapters/paystack.py

"""
PAYSTACK WEBHOOK ADAPTER

x-paystack-signature = HMAC-SHA512(secret_key, raw_body), hex.
charge.success carries everything we need; amounts are in kobo.
"""

from __future__ import annotations

import hashlib
import hmac

from common.exceptions import ValidationError
from common.money import cents_to_money
from payments.models import Payment
from payments.services.adapters.base import InboxKey
from payments.services.clients import payments_cfg
from payments.services.events import PaymentApproved, PaymentFailed, PaymentIgnored

CHANNEL_METHODS = {
    "card": Payment.METHOD_CARD,
    "bank": Payment.METHOD_TRANSFER,
    "bank_transfer": Payment.METHOD_TRANSFER,
    "dedicated_nuban": Payment.METHOD_TRANSFER,
    "ussd": Payment.METHOD_TRANSFER,
}


class PaystackAdapter:
    provider = Payment.PROVIDER_PAYSTACK
    signature_header = "x-paystack-signature"

    def __init__(self, *, secret: str | None = None):
        self.secret = (secret or payments_cfg("PAYSTACK").get("SECRET_KEY") or "").strip()

    def verify_signature(self, *, headers, raw_body: bytes, payload=None, query=None) -> bool:
        signature = (headers.get(self.signature_header) or "").strip()
        if not (self.secret and signature):
            return False
        computed = hmac.new(
            self.secret.encode("utf-8"), raw_body or b"", hashlib.sha512
        ).hexdigest()
        return hmac.compare_digest(computed, signature)

    def inbox_key(self, payload: dict, query=None) -> InboxKey:
        event = str(payload.get("event") or "")
        data = payload.get("data") or {}
        ref = str(data.get("id") or data.get("reference") or "").strip()
        return InboxKey(external_id=f"{event}:{ref}", event_type=event)

    def normalize(self, *, workspace_id, payload: dict):
        event = str(payload.get("event") or "")
        data = payload.get("data") or {}
        reference = str(data.get("reference") or "").strip()

        if event == "charge.failed":
            return PaymentFailed(
                provider=self.provider,
                external_id=reference,
                status=str(data.get("status") or "failed"),
                reason=str(data.get("gateway_response") or ""),
            )
        if event != "charge.success":
            return PaymentIgnored(provider=self.provider, reason=f"Unhandled event '{event}'")
        if not reference:
            raise ValidationError("charge.success without reference", code="INVALID_PAYLOAD")

        metadata = data.get("metadata") or {}
        if not isinstance(metadata, dict):
            metadata = {}

        meta_workspace = metadata.get("workspace_id")
        if meta_workspace and str(meta_workspace) != str(workspace_id):
            raise ValidationError(
                "Payment metadata belongs to another workspace", code="WORKSPACE_MISMATCH"
            )

        order_id = metadata.get("order_id") or None
        customer_id = metadata.get("customer_id") or None
        if not order_id and not customer_id:
            raise ValidationError(
                "charge.success metadata has neither order_id nor customer_id",
                code="INVALID_REFERENCE",
            )

        return PaymentApproved(
            provider=self.provider,
            external_id=reference,
            amount=cents_to_money(data.get("amount")),
            currency=str(data.get("currency") or ""),
            order_id=str(order_id) if order_id else None,
            customer_id=str(customer_id) if customer_id else None,
            method=CHANNEL_METHODS.get(str(data.get("channel") or ""), Payment.METHOD_OTHER),
            fee=cents_to_money(data.get("fees") or 0),
            raw={
                "status": data.get("status"),
                "channel": data.get("channel"),
                "paid_at": data.get("paid_at"),
                "customer_email": (data.get("customer") or {}).get("email"),
            },
        )
