# orders/tests/test_orders.py

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from common.exceptions import DependencyError, StateError
from customers.models import Customer
from inventory.models import Product, StockItem
from ledger.models import LedgerEntry
from ledger.services.settlement import reverse_payment
from orders.models import InvoiceRecord, Order
from orders.services.invoicing import InvoiceAuthorization, request_invoice
from orders.services.order_lifecycle import InvalidOrderTransitionError
from orders.services.order_numbers import (
    OrderNumberExhaustedError,
    next_order_number,
    period_prefix,
)
from orders.services.order_service import (
    OrderLineInput,
    change_status,
    create_order,
    expire_stale_drafts,
    restore_order,
    soft_delete_order,
    trash_order,
)
from payments.models import Payment
from workspaces.models import Workspace

User = get_user_model()


class FakeTaxAuthority:
    def __init__(self, *, approved=True, error=None):
        self.approved = approved
        self.error = error
        self.calls = 0

    def authorize(self, order):
        self.calls += 1
        if self.error is not None:
            raise self.error
        if self.approved:
            return InvoiceAuthorization(
                approved=True,
                invoice_number="0001-00000042",
                authorization_code="74123456789012",
                raw={"result": "A"},
            )
        return InvoiceAuthorization(approved=False, rejection_reason="Invalid tax id")


class OrderTestBase(TestCase):
    def setUp(self):
        self.workspace = Workspace.objects.create(name="Orders WS", slug="orders")
        self.customer = Customer.objects.create(workspace=self.workspace, name="Pablo Sosa")
        self.product = Product.objects.create(
            workspace=self.workspace, sku="TEA-1", name="Green tea", unit_price=Decimal("250.00")
        )
        self.item = StockItem.objects.create(product=self.product, quantity=20)

    def _create(self, qty=2, **kwargs):
        return create_order(
            workspace_id=self.workspace.pk,
            customer_id=self.customer.pk,
            items=[OrderLineInput(product_id=self.product.pk, quantity=qty)],
            **kwargs,
        )

    def _balance(self):
        self.customer.refresh_from_db()
        return self.customer.current_balance


# ======================================================
# ORDER NUMBERS
# ======================================================


class OrderNumberTests(OrderTestBase):
    """
    GUARANTEES:
    - Format is ORD-YYYYMM-00001 and increments per workspace
    - Collisions are retried, then reported as ORDER_NUMBER_CONFLICT
    """

    def test_format_and_increment(self):
        first = self._create()
        second = self._create()

        prefix = period_prefix()
        self.assertEqual(first.order_number, f"{prefix}00001")
        self.assertEqual(second.order_number, f"{prefix}00002")
        self.assertRegex(first.order_number, r"^ORD-\d{6}-\d{5}$")

    def test_sequence_is_per_workspace(self):
        self._create()
        other = Workspace.objects.create(name="Other", slug="other")
        self.assertEqual(next_order_number(other.pk), f"{period_prefix()}00001")

    def test_collision_exhaustion_is_a_conflict(self):
        existing = self._create().order_number

        with patch(
            "orders.services.order_numbers.next_order_number", return_value=existing
        ):
            with self.assertRaises(OrderNumberExhaustedError) as ctx:
                self._create()

        self.assertEqual(ctx.exception.code, "ORDER_NUMBER_CONFLICT")
        self.assertEqual(Order.objects.count(), 1)
        self.item.refresh_from_db()
        self.assertEqual(self.item.reserved, 2)

    def test_collision_is_retried(self):
        existing = self._create().order_number

        with patch(
            "orders.services.order_numbers.next_order_number",
            side_effect=[existing, "ORD-209912-00007"],
        ):
            order = self._create()

        self.assertEqual(order.order_number, "ORD-209912-00007")


# ======================================================
# LIFECYCLE
# ======================================================


class OrderLifecycleTests(OrderTestBase):
    """
    Order status changes.

    GUARANTEES:
    - Debt is posted once, on entering a debt-bearing status
    - Cancel reverses the debt and releases stock
    - Illegal transitions are refused
    - Every change is recorded in status_history
    - An order paid in full before acceptance becomes paid when accepted
    """

    def test_draft_carries_no_debt(self):
        self._create()
        self.assertEqual(self._balance(), Decimal("0.00"))
        self.assertFalse(LedgerEntry.objects.exists())

    def test_accept_posts_debit_once(self):
        order = self._create()
        change_status(order_id=order.pk, target_status=Order.STATUS_ACCEPTED)
        change_status(order_id=order.pk, target_status=Order.STATUS_PROCESSING)

        self.assertEqual(self._balance(), Decimal("500.00"))
        debit = LedgerEntry.objects.get(reference_type=LedgerEntry.REF_ORDER)
        self.assertEqual(debit.reference_id, str(order.pk))

    def test_cancel_reverses_debit_and_releases_stock(self):
        order = self._create(status=Order.STATUS_ACCEPTED)
        updated = change_status(
            order_id=order.pk, target_status=Order.STATUS_CANCELLED, reason="Out of route"
        )

        self.assertEqual(updated.status, Order.STATUS_CANCELLED)
        self.assertEqual(updated.cancel_reason, "Out of route")
        self.assertIsNotNone(updated.cancelled_at)
        self.assertEqual(self._balance(), Decimal("0.00"))
        self.item.refresh_from_db()
        self.assertEqual(self.item.reserved, 0)

    def test_invalid_transition(self):
        order = self._create()
        with self.assertRaises(InvalidOrderTransitionError):
            change_status(order_id=order.pk, target_status=Order.STATUS_SHIPPED)

        order.refresh_from_db()
        self.assertEqual(order.status, Order.STATUS_DRAFT)

    def test_history_records_each_change(self):
        order = self._create()
        change_status(order_id=order.pk, target_status=Order.STATUS_ACCEPTED, reason="ok")

        history = list(order.status_history.order_by("created_at", "id"))
        self.assertEqual(
            [(h.previous_status, h.new_status) for h in history],
            [("", Order.STATUS_DRAFT), (Order.STATUS_DRAFT, Order.STATUS_ACCEPTED)],
        )

    def test_initial_payment_settles_order(self):
        order = self._create(status=Order.STATUS_ACCEPTED, initial_payment="500.00")

        self.assertEqual(order.status, Order.STATUS_PAID)
        self.assertEqual(order.paid_amount, Decimal("500.00"))
        self.assertEqual(self._balance(), Decimal("0.00"))

    def test_paid_draft_flips_to_paid_when_accepted(self):
        order = self._create(initial_payment="500.00")
        self.assertEqual(order.status, Order.STATUS_DRAFT)
        self.assertEqual(order.paid_amount, Decimal("500.00"))

        updated = change_status(order_id=order.pk, target_status=Order.STATUS_ACCEPTED)

        self.assertEqual(updated.status, Order.STATUS_PAID)
        self.assertEqual(self._balance(), Decimal("0.00"))
        payment = Payment.objects.get(order=order)
        flip = updated.status_history.get(new_status=Order.STATUS_PAID)
        self.assertEqual(flip.previous_status, Order.STATUS_ACCEPTED)
        self.assertEqual(flip.source_reference, f"Payment:{payment.pk}")

    def test_paid_order_waits_for_acceptance(self):
        order = self._create(initial_payment="500.00")
        waiting = change_status(order_id=order.pk, target_status=Order.STATUS_AWAITING_ACCEPTANCE)
        self.assertEqual(waiting.status, Order.STATUS_AWAITING_ACCEPTANCE)

        accepted = change_status(order_id=order.pk, target_status=Order.STATUS_ACCEPTED)
        self.assertEqual(accepted.status, Order.STATUS_PAID)

    def test_partly_paid_draft_stays_accepted(self):
        order = self._create(initial_payment="100.00")
        updated = change_status(order_id=order.pk, target_status=Order.STATUS_ACCEPTED)

        self.assertEqual(updated.status, Order.STATUS_ACCEPTED)
        self.assertEqual(self._balance(), Decimal("400.00"))

    def test_reversal_undoes_flip_made_on_acceptance(self):
        order = self._create(initial_payment="500.00")
        change_status(order_id=order.pk, target_status=Order.STATUS_ACCEPTED)

        reverse_payment(payment_id=Payment.objects.get(order=order).pk)

        order.refresh_from_db()
        self.assertEqual(order.status, Order.STATUS_ACCEPTED)
        self.assertEqual(order.paid_amount, Decimal("0.00"))
        self.assertEqual(self._balance(), Decimal("500.00"))

    def test_expire_stale_drafts(self):
        stale = self._create()
        fresh = self._create()
        Order.objects.filter(pk=stale.pk).update(created_at=timezone.now() - timedelta(days=10))

        self.assertEqual(expire_stale_drafts(ttl_hours=72), 1)

        stale.refresh_from_db()
        fresh.refresh_from_db()
        self.assertEqual(stale.status, Order.STATUS_CANCELLED)
        self.assertEqual(fresh.status, Order.STATUS_DRAFT)


# ======================================================
# TRASH / RESTORE / DELETE
# ======================================================


class OrderTrashTests(OrderTestBase):
    """
    GUARANTEES:
    - Trash releases stock and remembers the previous status
    - Restore goes back to that status and holds stock again
    - Only draft / cancelled / trashed orders can be soft-deleted
    """

    def test_trash_and_restore_draft(self):
        order = self._create(qty=3)

        trashed = trash_order(order_id=order.pk)
        self.assertEqual(trashed.status, Order.STATUS_TRASHED)
        self.item.refresh_from_db()
        self.assertEqual(self.item.reserved, 0)

        restored = restore_order(order_id=order.pk)
        self.assertEqual(restored.status, Order.STATUS_DRAFT)
        self.assertNotIn("previous_status", restored.metadata)
        self.item.refresh_from_db()
        self.assertEqual(self.item.reserved, 3)

    def test_accepted_order_cannot_be_trashed(self):
        order = self._create(status=Order.STATUS_ACCEPTED)
        with self.assertRaises(InvalidOrderTransitionError):
            trash_order(order_id=order.pk)

    def test_restore_requires_trashed(self):
        order = self._create()
        with self.assertRaises(StateError) as ctx:
            restore_order(order_id=order.pk)
        self.assertEqual(ctx.exception.code, "ORDER_NOT_TRASHED")

    def test_soft_delete_rules(self):
        accepted = self._create(status=Order.STATUS_ACCEPTED)
        with self.assertRaises(StateError) as ctx:
            soft_delete_order(order_id=accepted.pk)
        self.assertEqual(ctx.exception.code, "ORDER_NOT_DELETABLE")

        draft = self._create()
        deleted = soft_delete_order(order_id=draft.pk)
        self.assertIsNotNone(deleted.deleted_at)
        self.assertTrue(Order.objects.filter(pk=draft.pk).exists())


# ======================================================
# INVOICING
# ======================================================


class InvoicingTests(OrderTestBase):
    """
    GUARANTEES:
    - Approval moves the order to invoiced and stores the authorization
    - Rejection moves it to invoice_cancelled
    - A collaborator failure leaves it in pending_invoicing
    """

    def setUp(self):
        super().setUp()
        self.order = self._create(status=Order.STATUS_ACCEPTED)

    def test_approved(self):
        record = request_invoice(order_id=self.order.pk, client=FakeTaxAuthority())

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_INVOICED)
        self.assertEqual(record.status, InvoiceRecord.STATUS_APPROVED)
        self.assertEqual(record.authorization_code, "74123456789012")

    def test_rejected(self):
        record = request_invoice(order_id=self.order.pk, client=FakeTaxAuthority(approved=False))

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_INVOICE_CANCELLED)
        self.assertEqual(record.status, InvoiceRecord.STATUS_REJECTED)

    def test_dependency_failure_leaves_pending(self):
        client = FakeTaxAuthority(error=DependencyError("timeout", code="TAX_AUTHORITY_TIMEOUT"))

        with self.assertLogs("orders.services.invoicing", level="ERROR"):
            with self.assertRaises(DependencyError):
                request_invoice(order_id=self.order.pk, client=client)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_PENDING_INVOICING)
        self.assertFalse(InvoiceRecord.objects.exists())

        request_invoice(order_id=self.order.pk, client=FakeTaxAuthority())
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_INVOICED)


# ======================================================
# API
# ======================================================


class OrderApiTests(OrderTestBase):
    """
    GUARANTEES:
    - Orders are created through the API with stock held
    - Order-level payments cap at total and keep the excess as credit
    - Insufficient stock surfaces as 409 in the error envelope
    """

    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.client.force_authenticate(User.objects.create_user(username="seller", password="pw12345"))

    def _payload(self, qty=2, **extra):
        return {
            "workspace": str(self.workspace.pk),
            "customer_id": str(self.customer.pk),
            "items": [{"product_id": str(self.product.pk), "quantity": qty}],
            **extra,
        }

    def test_create(self):
        res = self.client.post(reverse("orders-list"), self._payload(status="accepted"), format="json")

        self.assertEqual(res.status_code, status.HTTP_201_CREATED, res.data)
        self.assertEqual(res.data["status"], Order.STATUS_ACCEPTED)
        self.assertEqual(Decimal(str(res.data["total"])), Decimal("500.00"))
        self.assertEqual(self._balance(), Decimal("500.00"))

    def test_insufficient_stock_is_409(self):
        res = self.client.post(reverse("orders-list"), self._payload(qty=99), format="json")

        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(res.data["error"]["code"], "INSUFFICIENT_STOCK")
        self.assertEqual(Order.objects.count(), 0)

    def test_order_payment_keeps_excess_as_credit(self):
        order = self._create(status=Order.STATUS_ACCEPTED)

        res = self.client.post(
            reverse("orders-payments", args=[order.pk]),
            {"amount": "650.00", "method": "transfer"},
            format="json",
        )

        self.assertEqual(res.status_code, status.HTTP_201_CREATED, res.data)
        self.assertEqual(res.data["unallocated_amount"], Decimal("150.00"))
        self.assertEqual(self._balance(), Decimal("-150.00"))

    def test_invalid_status_change_is_409(self):
        order = self._create()
        res = self.client.post(
            reverse("orders-set-status", args=[order.pk]), {"status": "shipped"}, format="json"
        )
        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(res.data["error"]["code"], "INVALID_ORDER_TRANSITION")
