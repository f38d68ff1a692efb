# payments/services/adapters/base.py

from __future__ import annotations

from dataclasses import dataclass

from common.exceptions import ValidationError


class InvalidSignatureError(ValidationError):
    code = "INVALID_SIGNATURE"


@dataclass(frozen=True)
class InboxKey:
    external_id: str
    event_type: str


def parse_external_reference(reference: str, *, workspace_id) -> tuple[str | None, str | None]:
    """
    "<workspace>:<order_id>"             -> (order_id, None)
    "<workspace>:account:<customer_id>"  -> (None, customer_id)
    """
    parts = [p.strip() for p in str(reference or "").split(":")]
    if len(parts) not in (2, 3) or not all(parts):
        raise ValidationError(
            f"Unrecognized external reference '{reference}'", code="INVALID_REFERENCE"
        )
    if parts[0] != str(workspace_id):
        raise ValidationError(
            "External reference belongs to another workspace", code="WORKSPACE_MISMATCH"
        )
    if len(parts) == 3:
        if parts[1] != "account":
            raise ValidationError(
                f"Unrecognized external reference '{reference}'", code="INVALID_REFERENCE"
            )
        return None, parts[2]
    return parts[1], None
