# inventory/tests/test_reservations.py

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from customers.models import Customer
from inventory.models import Product, StockItem, StockMovement, StockReservation
from inventory.services.reservations import InsufficientStockError, expire_reservations
from inventory.services.stock_adjustments import StockAdjustmentError, adjust_stock
from notifications.models import Notification
from orders.models import Order
from orders.services.order_service import (
    OrderLineInput,
    cancel_order,
    change_status,
    create_order,
)
from workspaces.models import Workspace

User = get_user_model()


class InventoryTestBase(TestCase):
    def setUp(self):
        self.workspace = Workspace.objects.create(name="Inventory WS", slug="inv")
        self.customer = Customer.objects.create(workspace=self.workspace, name="Marta Diaz")
        self.product = Product.objects.create(
            workspace=self.workspace, sku="SKU-A", name="Widget", unit_price=Decimal("100.00")
        )
        self.item = StockItem.objects.create(product=self.product, quantity=5, low_threshold=2)

    def _order(self, qty, *, product=None, status=Order.STATUS_DRAFT, extra=()):
        lines = [OrderLineInput(product_id=(product or self.product).pk, quantity=qty), *extra]
        return create_order(
            workspace_id=self.workspace.pk,
            customer_id=self.customer.pk,
            items=lines,
            status=status,
        )


# ======================================================
# RESERVE
# ======================================================


class ReservationTests(InventoryTestBase):
    """
    Stock reservation at order creation.

    GUARANTEES:
    - Creating an order holds its stock
    - Insufficient stock aborts the whole order (no order, no partial holds)
    - Every hold writes a StockMovement
    """

    def test_order_creation_reserves_stock(self):
        order = self._order(2)

        self.item.refresh_from_db()
        self.assertEqual(self.item.reserved, 2)
        self.assertEqual(self.item.available, 3)

        reservation = StockReservation.objects.get(order=order)
        self.assertEqual(reservation.status, StockReservation.STATUS_ACTIVE)
        self.assertEqual(reservation.quantity, 2)

        movement = StockMovement.objects.get(stock_item=self.item)
        self.assertEqual(movement.movement_type, StockMovement.MovementType.RESERVATION)
        self.assertEqual((movement.previous_qty, movement.new_qty), (5, 3))

    def test_insufficient_stock_creates_nothing(self):
        with self.assertRaises(InsufficientStockError):
            self._order(6)

        self.item.refresh_from_db()
        self.assertEqual(self.item.reserved, 0)
        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(StockReservation.objects.count(), 0)

    def test_multi_line_failure_leaves_no_partial_holds(self):
        scarce = Product.objects.create(
            workspace=self.workspace, sku="SKU-B", name="Gadget", unit_price=Decimal("50.00")
        )
        scarce_item = StockItem.objects.create(product=scarce, quantity=1)

        with self.assertRaises(InsufficientStockError) as ctx:
            self._order(2, extra=[OrderLineInput(product_id=scarce.pk, quantity=3)])

        self.assertEqual(ctx.exception.code, "INSUFFICIENT_STOCK")
        self.item.refresh_from_db()
        scarce_item.refresh_from_db()
        self.assertEqual((self.item.reserved, scarce_item.reserved), (0, 0))
        self.assertEqual(StockMovement.objects.count(), 0)
        self.assertEqual(Order.objects.count(), 0)

    def test_last_unit_goes_to_first_order_only(self):
        StockItem.objects.filter(pk=self.item.pk).update(quantity=1)

        winner = self._order(1)
        with self.assertRaises(InsufficientStockError):
            self._order(1)

        self.item.refresh_from_db()
        self.assertEqual(self.item.available, 0)
        self.assertEqual(Order.objects.get().pk, winner.pk)

    def test_duplicate_lines_are_merged(self):
        self._order(2, extra=[OrderLineInput(product_id=self.product.pk, quantity=1)])
        self.assertEqual(StockReservation.objects.get().quantity, 3)

    def test_low_stock_notifies_only_on_crossing(self):
        with self.captureOnCommitCallbacks(execute=True):
            self._order(2)  # 5 -> 3
            self._order(1)  # 3 -> 2 (crosses threshold 2)
            self._order(1)  # 2 -> 1 (already low)

        low = Notification.objects.filter(kind=Notification.KIND_LOW_STOCK)
        self.assertEqual(low.count(), 1)
        self.assertEqual(low.get().metadata["available"], 2)


# ======================================================
# LIFECYCLE
# ======================================================


class ReservationLifecycleTests(InventoryTestBase):
    """
    GUARANTEES:
    - Cancel releases holds
    - Shipping consumes holds (quantity drops, available unchanged)
    - Expired holds are swept back to available
    """

    def test_cancel_releases(self):
        order = self._order(2)
        cancel_order(order_id=order.pk, reason="Customer changed mind")

        self.item.refresh_from_db()
        self.assertEqual(self.item.reserved, 0)
        self.assertEqual(
            StockReservation.objects.get(order=order).status, StockReservation.STATUS_RELEASED
        )

    def test_shipping_consumes(self):
        order = self._order(2, status=Order.STATUS_ACCEPTED)
        change_status(order_id=order.pk, target_status=Order.STATUS_SHIPPED)

        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 3)
        self.assertEqual(self.item.reserved, 0)
        self.assertEqual(self.item.available, 3)
        self.assertEqual(
            StockReservation.objects.get(order=order).status, StockReservation.STATUS_CONSUMED
        )

    def test_expire_reservations(self):
        order = self._order(2)
        StockReservation.objects.filter(order=order).update(
            expires_at=timezone.now() - timedelta(minutes=1)
        )

        self.assertEqual(expire_reservations(), 1)
        self.assertEqual(expire_reservations(), 0)

        self.item.refresh_from_db()
        self.assertEqual(self.item.reserved, 0)
        self.assertEqual(
            StockReservation.objects.get(order=order).status, StockReservation.STATUS_EXPIRED
        )


# ======================================================
# ADJUSTMENTS
# ======================================================


class StockAdjustmentTests(InventoryTestBase):
    """
    GUARANTEES:
    - Adjustments never push quantity below reserved
    - Each adjustment is audited
    """

    def test_cannot_drop_below_reserved(self):
        self._order(2)

        with self.assertRaises(StockAdjustmentError):
            adjust_stock(stock_item_id=self.item.pk, quantity_delta=-4, reason="Count")

        result = adjust_stock(stock_item_id=self.item.pk, quantity_delta=-3, reason="Count")
        self.assertEqual(result.stock_item.quantity, 2)
        self.assertEqual(result.stock_item.available, 0)

    def test_zero_delta_is_rejected(self):
        with self.assertRaises(StockAdjustmentError):
            adjust_stock(stock_item_id=self.item.pk, quantity_delta=0)

    def test_restock_movement_type(self):
        result = adjust_stock(
            stock_item_id=self.item.pk, quantity_delta=10, reason="Supplier", restock=True
        )
        self.assertEqual(result.movement.movement_type, StockMovement.MovementType.RESTOCK)
        self.assertEqual((result.movement.previous_qty, result.movement.new_qty), (5, 15))

    def test_adjust_endpoint(self):
        client = APIClient()
        client.force_authenticate(User.objects.create_user(username="stock", password="pw12345"))

        res = client.post(
            reverse("stock-items-adjust", args=[self.item.pk]),
            {"quantity_delta": -1, "reason": "Broken"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_200_OK, res.data)
        self.assertEqual(res.data["stock_item"]["quantity"], 4)
