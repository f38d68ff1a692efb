# inventory/services/reservations.py

"""
STOCK RESERVATION COORDINATOR

Purpose:
- Hold stock for an order for the order's lifetime, inside the SAME
  transaction that creates the order.

Hard rules:
- Every StockItem touched is locked (select_for_update), in ascending id
  order so concurrent orders never deadlock on each other.
- available = quantity - reserved must cover the request, otherwise the
  whole order creation aborts (InsufficientStockError; nothing persists).
- Every change to reserved/quantity writes a StockMovement audit row.
- Low-stock notifications fire only on the crossing edge:
      before > threshold  and  after <= threshold

Lifecycle handled here:
- reserve_for_order    (order creation)
- release_for_order    (cancellation / return)
- consume_for_order    (shipped / delivered)
- expire_reservations  (scheduled sweep of abandoned holds)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from common.exceptions import ConflictError, NotFoundError, ValidationError
from inventory.models import StockItem, StockMovement, StockReservation
from ledger.services.ledger_service import actor_label
from notifications.models import Notification
from notifications.services.dispatch import notify_after_commit

logger = logging.getLogger(__name__)

REFERENCE_ORDER = "Order"


class InsufficientStockError(ConflictError):
    """Raised when available stock cannot cover a reservation."""

    code = "INSUFFICIENT_STOCK"


@dataclass(frozen=True)
class ReservationLine:
    product_id: object
    variant_id: object
    quantity: int


def _to_positive_qty(value) -> int:
    if isinstance(value, bool):
        raise ValidationError("quantity must be an integer")
    try:
        qty = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("quantity must be an integer") from exc
    if qty <= 0:
        raise ValidationError("quantity must be greater than zero")
    return qty


def _merge_lines(lines) -> dict[tuple, int]:
    merged: dict[tuple, int] = {}
    for line in lines:
        key = (str(line.product_id), str(line.variant_id) if line.variant_id else None)
        merged[key] = merged.get(key, 0) + _to_positive_qty(line.quantity)
    return merged


def _lookup_stock_item_ids(merged: dict[tuple, int]) -> dict[tuple, int]:
    ids: dict[tuple, int] = {}
    for product_id, variant_id in merged:
        row = (
            StockItem.objects.filter(product_id=product_id, variant_id=variant_id)
            .values_list("id", flat=True)
            .first()
        )
        if row is None:
            raise NotFoundError(
                f"No stock record for product {product_id}"
                + (f" / variant {variant_id}" if variant_id else ""),
                code="STOCK_ITEM_NOT_FOUND",
            )
        ids[(product_id, variant_id)] = row
    return ids


def _notify_low_stock(item: StockItem, *, before: int, after: int) -> None:
    threshold = int(item.low_threshold or 0)
    if not (before > threshold >= after):
        return

    notify_after_commit(
        workspace_id=item.product.workspace_id,
        kind=Notification.KIND_LOW_STOCK,
        title=f"Low stock: {item.product.name}",
        message=f"Available dropped to {after} (threshold {threshold}).",
        entity_type="StockItem",
        entity_id=item.pk,
        metadata={"available": after, "threshold": threshold},
    )


def reservation_expiry(now=None):
    now = now or timezone.now()
    return now + timedelta(hours=int(getattr(settings, "STOCK_RESERVATION_TTL_HOURS", 24)))


@transaction.atomic
def reserve_for_order(*, order, lines, actor=None, expires_at=None) -> list[StockReservation]:
    """
    Reserve every line for `order` or raise (and roll everything back).

    `lines` is an iterable of ReservationLine (or anything with
    product_id / variant_id / quantity).
    """
    merged = _merge_lines(lines)
    if not merged:
        return []

    ids = _lookup_stock_item_ids(merged)
    expires_at = expires_at or reservation_expiry()
    created_by = actor_label(actor)

    reservations: list[StockReservation] = []

    # Deterministic lock order across concurrent orders.
    for key, stock_item_id in sorted(ids.items(), key=lambda kv: kv[1]):
        qty = merged[key]
        item = (
            StockItem.objects.select_for_update()
            .select_related("product")
            .get(pk=stock_item_id)
        )

        before = item.available
        if before < qty:
            logger.info(
                "Insufficient stock for reservation",
                extra={
                    "order_id": str(order.pk),
                    "stock_item_id": item.pk,
                    "available": before,
                    "requested": qty,
                },
            )
            raise InsufficientStockError(
                f"Insufficient stock for {item.product.name}: "
                f"available {before}, requested {qty}"
            )

        item.reserved = int(item.reserved) + qty
        item.save(update_fields=["reserved", "updated_at"])
        after = item.available

        StockMovement.objects.create(
            stock_item=item,
            movement_type=StockMovement.MovementType.RESERVATION,
            quantity_delta=-qty,
            previous_qty=before,
            new_qty=after,
            reason=f"Reserved for order {order.order_number}",
            reference_type=REFERENCE_ORDER,
            reference_id=str(order.pk),
            created_by=created_by,
        )

        reservations.append(
            StockReservation.objects.create(
                order=order,
                stock_item=item,
                product_id=item.product_id,
                variant_id=item.variant_id,
                quantity=qty,
                expires_at=expires_at,
            )
        )

        _notify_low_stock(item, before=before, after=after)

    return reservations


def _release_one(reservation: StockReservation, *, status: str, reason: str, created_by: str) -> None:
    item = StockItem.objects.select_for_update().get(pk=reservation.stock_item_id)

    before = item.available
    qty = min(int(reservation.quantity), int(item.reserved))
    item.reserved = int(item.reserved) - qty
    item.save(update_fields=["reserved", "updated_at"])

    if qty > 0:
        StockMovement.objects.create(
            stock_item=item,
            movement_type=StockMovement.MovementType.RELEASE,
            quantity_delta=qty,
            previous_qty=before,
            new_qty=item.available,
            reason=reason,
            reference_type=REFERENCE_ORDER,
            reference_id=str(reservation.order_id),
            created_by=created_by,
        )

    reservation.status = status
    reservation.released_at = timezone.now()
    reservation.save(update_fields=["status", "released_at"])


def _active_reservations(order):
    return (
        StockReservation.objects.select_for_update()
        .filter(order=order, status=StockReservation.STATUS_ACTIVE)
        .order_by("stock_item_id")
    )


@transaction.atomic
def release_for_order(*, order, actor=None, reason: str = "") -> int:
    """Release every active hold of `order`. Returns the number released."""
    created_by = actor_label(actor)
    count = 0
    for reservation in _active_reservations(order):
        _release_one(
            reservation,
            status=StockReservation.STATUS_RELEASED,
            reason=reason or f"Released for order {order.order_number}",
            created_by=created_by,
        )
        count += 1
    return count


@transaction.atomic
def consume_for_order(*, order, actor=None) -> int:
    """
    Stock physically leaves: quantity and reserved both drop by the held
    amount, so available is unchanged.
    """
    created_by = actor_label(actor)
    count = 0
    now = timezone.now()

    for reservation in _active_reservations(order):
        item = StockItem.objects.select_for_update().get(pk=reservation.stock_item_id)
        qty = min(int(reservation.quantity), int(item.reserved))

        before_qty = int(item.quantity)
        item.quantity = before_qty - qty
        item.reserved = int(item.reserved) - qty
        item.save(update_fields=["quantity", "reserved", "updated_at"])

        if qty > 0:
            StockMovement.objects.create(
                stock_item=item,
                movement_type=StockMovement.MovementType.SALE,
                quantity_delta=-qty,
                previous_qty=before_qty,
                new_qty=item.quantity,
                reason=f"Fulfilled order {order.order_number}",
                reference_type=REFERENCE_ORDER,
                reference_id=str(order.pk),
                created_by=created_by,
            )

        reservation.status = StockReservation.STATUS_CONSUMED
        reservation.committed_at = now
        reservation.save(update_fields=["status", "committed_at"])
        count += 1

    return count


def expire_reservations(*, now=None, limit: int = 500) -> int:
    """
    Release holds whose expires_at has passed. Each reservation is handled
    in its own transaction so one bad row does not block the sweep.
    """
    now = now or timezone.now()
    expired_ids = list(
        StockReservation.objects.filter(
            status=StockReservation.STATUS_ACTIVE,
            expires_at__lt=now,
        )
        .order_by("expires_at")
        .values_list("id", flat=True)[:limit]
    )

    count = 0
    for reservation_id in expired_ids:
        with transaction.atomic():
            reservation = (
                StockReservation.objects.select_for_update()
                .filter(pk=reservation_id, status=StockReservation.STATUS_ACTIVE)
                .first()
            )
            if reservation is None:
                continue
            _release_one(
                reservation,
                status=StockReservation.STATUS_EXPIRED,
                reason="Reservation expired",
                created_by="reservation-expiry",
            )
            count += 1

    if count:
        logger.info("Expired stock reservations", extra={"count": count})
    return count
