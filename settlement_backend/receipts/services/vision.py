# receipts/services/vision.py

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from django.conf import settings

from common.exceptions import DependencyError
from common.http import request_json

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VisionExtraction:
    amount_cents: int | None
    confidence: Decimal
    extracted_text: str = ""


def _confidence(value) -> Decimal:
    try:
        c = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")
    return max(Decimal("0"), min(Decimal("1"), c)).quantize(Decimal("0.001"))


class VisionClient:
    """
    Reads the paid amount off a receipt image/PDF.

    The remote service answers {"amount_cents": int|null, "confidence": 0..1,
    "text": "..."}; anything else is a DependencyError.
    """

    def __init__(self, *, url: str | None = None, api_key: str | None = None, timeout: float | None = None):
        cfg = (getattr(settings, "COLLABORATORS", {}) or {}).get("VISION") or {}
        self.url = (url or cfg.get("URL") or "").strip()
        self.api_key = (api_key or cfg.get("API_KEY") or "").strip()
        self.timeout = timeout or cfg.get("TIMEOUT_SECONDS") or 20

    @property
    def is_configured(self) -> bool:
        return bool(self.url)

    def extract(self, file_bytes: bytes, file_type: str) -> VisionExtraction:
        if not self.url:
            raise DependencyError("Vision service is not configured", code="VISION_UNCONFIGURED")

        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        data = request_json(
            "POST",
            self.url,
            service="Vision",
            headers=headers,
            body={
                "file_type": file_type,
                "content_base64": base64.b64encode(file_bytes).decode("ascii"),
            },
            timeout=self.timeout,
        )

        raw_amount = data.get("amount_cents")
        try:
            amount_cents = int(raw_amount) if raw_amount is not None else None
        except (TypeError, ValueError) as exc:
            raise DependencyError(f"Vision returned an invalid amount: {raw_amount!r}") from exc

        if amount_cents is not None and amount_cents <= 0:
            amount_cents = None

        return VisionExtraction(
            amount_cents=amount_cents,
            confidence=_confidence(data.get("confidence")),
            extracted_text=str(data.get("text") or "")[:10000],
        )
