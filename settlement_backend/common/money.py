# common/money.py

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from common.exceptions import ValidationError

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value) -> Decimal:
    """
    Normalize any numeric-ish input to a 2dp Decimal.

    Raises ValidationError for values that cannot be parsed; callers that
    want a lenient parse should check for None/"" first.
    """
    if value is None or value == "":
        return ZERO

    if isinstance(value, bool):
        raise ValidationError(f"Invalid money value: {value!r}")

    if isinstance(value, Decimal):
        amt = value
    else:
        try:
            amt = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError) as exc:
            raise ValidationError(f"Invalid money value: {value!r}") from exc

    if not amt.is_finite():
        raise ValidationError(f"Invalid money value: {value!r}")

    return amt.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def positive_money(value, *, field: str = "amount") -> Decimal:
    amt = money(value)
    if amt <= ZERO:
        raise ValidationError(f"{field} must be greater than zero", code="INVALID_AMOUNT")
    return amt


def cents_to_money(cents) -> Decimal:
    """Provider amounts in minor units (cents, kobo) -> 2dp Decimal."""
    try:
        return money(Decimal(int(cents)) / Decimal("100"))
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid minor-unit amount: {cents!r}") from exc
