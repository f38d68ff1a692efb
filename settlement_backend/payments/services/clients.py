# payments/services/clients.py

from __future__ import annotations

from django.conf import settings

from common.exceptions import DependencyError
from common.http import request_json

MERCADOPAGO_BASE = "https://api.mercadopago.com"


def payments_cfg(provider: str) -> dict:
    payments = getattr(settings, "PAYMENTS", {}) or {}
    cfg = payments.get(provider) if isinstance(payments, dict) else None
    return cfg if isinstance(cfg, dict) else {}


def provider_timeout() -> float:
    payments = getattr(settings, "PAYMENTS", {}) or {}
    return float(payments.get("TIMEOUT_SECONDS") or 10)


class MercadoPagoClient:
    """Read-only MercadoPago API access used by the inbox worker."""

    def __init__(self, *, access_token: str | None = None, timeout: float | None = None):
        self.access_token = (
            access_token or payments_cfg("MERCADOPAGO").get("ACCESS_TOKEN") or ""
        ).strip()
        self.timeout = timeout or provider_timeout()

    def get_payment(self, payment_id: str) -> dict:
        if not self.access_token:
            raise DependencyError(
                "MercadoPago access token is not configured",
                code="PROVIDER_UNCONFIGURED",
            )
        return request_json(
            "GET",
            f"{MERCADOPAGO_BASE}/v1/payments/{payment_id}",
            service="MercadoPago",
            headers={"Authorization": f"Bearer {self.access_token}"},
            timeout=self.timeout,
        )
