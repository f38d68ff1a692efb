# inventory/services/stock_adjustments.py

"""
STOCK ADJUSTMENTS SERVICE

Purpose:
- Controlled on-hand quantity changes for a StockItem (restock, counts,
  shrinkage) with an immutable StockMovement audit row.

Rules:
- quantity_delta must be a non-zero integer
- an adjustment cannot push quantity below what is currently reserved
"""

from __future__ import annotations

from dataclasses import dataclass

from django.db import transaction

from common.exceptions import NotFoundError, ValidationError
from inventory.models import StockItem, StockMovement
from ledger.services.ledger_service import actor_label


class StockAdjustmentError(ValidationError):
    """Domain error for adjustment failures."""

    code = "STOCK_ADJUSTMENT_INVALID"


@dataclass(frozen=True)
class AdjustmentResult:
    stock_item: StockItem
    movement: StockMovement
    quantity_delta: int


def _to_int_delta(value) -> int:
    if value is None or value == "":
        raise StockAdjustmentError("quantity_delta is required")

    if isinstance(value, bool):
        # bool is an int subclass
        raise StockAdjustmentError("quantity_delta must be an integer")

    try:
        delta = int(value)
    except (TypeError, ValueError) as exc:
        raise StockAdjustmentError("quantity_delta must be an integer") from exc

    if delta == 0:
        raise StockAdjustmentError("quantity_delta cannot be 0")

    return delta


@transaction.atomic
def adjust_stock(
    *,
    stock_item_id,
    quantity_delta,
    actor=None,
    reason: str = "",
    restock: bool = False,
) -> AdjustmentResult:
    """
    quantity_delta:
      +N -> adds N on hand
      -N -> removes N on hand (never below reserved)
    """
    delta = _to_int_delta(quantity_delta)

    try:
        item = StockItem.objects.select_for_update().get(pk=stock_item_id)
    except (StockItem.DoesNotExist, ValueError, TypeError) as exc:
        raise NotFoundError(f"Stock item {stock_item_id} not found") from exc

    before = int(item.quantity)
    after = before + delta

    if after < int(item.reserved):
        raise StockAdjustmentError(
            f"Cannot reduce quantity below reserved. Quantity: {before}, "
            f"reserved: {item.reserved}, requested: {delta}"
        )

    item.quantity = after
    item.save(update_fields=["quantity", "updated_at"])

    movement_type = (
        StockMovement.MovementType.RESTOCK
        if restock and delta > 0
        else StockMovement.MovementType.ADJUSTMENT
    )

    movement = StockMovement.objects.create(
        stock_item=item,
        movement_type=movement_type,
        quantity_delta=delta,
        previous_qty=before,
        new_qty=after,
        reason=(reason or "")[:255],
        reference_type="Adjustment",
        created_by=actor_label(actor),
    )

    return AdjustmentResult(stock_item=item, movement=movement, quantity_delta=delta)
