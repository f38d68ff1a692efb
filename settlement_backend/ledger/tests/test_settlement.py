# ledger/tests/test_settlement.py

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from common.exceptions import ConflictError, StateError, ValidationError
from customers.models import Customer
from ledger.models import LedgerEntry
from ledger.services.balance_service import verify_customer_balance
from ledger.services.ledger_service import create_adjustment, create_order_debit
from ledger.services.settlement import (
    apply_payment,
    apply_payment_to_order,
    apply_standing_credit,
    reverse_payment,
)
from orders.models import Order
from orders.services.order_service import cancel_order
from payments.models import Payment, PaymentAllocation
from workspaces.models import Workspace

User = get_user_model()


def _order(customer, number, total, *, age_minutes=0, status=Order.STATUS_ACCEPTED):
    order = Order.objects.create(
        workspace=customer.workspace,
        customer=customer,
        order_number=number,
        status=status,
        subtotal=Decimal(total),
        total=Decimal(total),
        created_at=timezone.now() - timedelta(minutes=age_minutes),
    )
    if status != Order.STATUS_DRAFT:
        create_order_debit(order=order)
    return order


class SettlementTestBase(TestCase):
    def setUp(self):
        self.workspace = Workspace.objects.create(name="Settlement WS", slug="settle")
        self.customer = Customer.objects.create(workspace=self.workspace, name="Carlos Ruiz")

    def assertLedgerConsistent(self):
        self.assertTrue(verify_customer_balance(self.customer).is_consistent)


# ======================================================
# ACCOUNT-LEVEL (FIFO)
# ======================================================


class FifoSettlementTests(SettlementTestBase):
    """
    Account-level settlement.

    GUARANTEES:
    - Oldest order is settled first
    - Allocation is greedy and stops when money runs out
    - Leftover money stays as standing credit
    - Drafts / cancelled orders never receive allocations
    """

    def setUp(self):
        super().setUp()
        self.o1 = _order(self.customer, "ORD-202401-00001", "500.00", age_minutes=30)
        self.o2 = _order(self.customer, "ORD-202401-00002", "300.00", age_minutes=20)
        self.o3 = _order(self.customer, "ORD-202401-00003", "800.00", age_minutes=10)

    def test_700_over_500_300_800(self):
        result = apply_payment(customer_id=self.customer.pk, amount="700.00")

        for o in (self.o1, self.o2, self.o3):
            o.refresh_from_db()

        self.assertEqual(self.o1.paid_amount, Decimal("500.00"))
        self.assertEqual(self.o1.status, Order.STATUS_PAID)
        self.assertIsNotNone(self.o1.paid_at)

        self.assertEqual(self.o2.paid_amount, Decimal("200.00"))
        self.assertEqual(self.o2.status, Order.STATUS_ACCEPTED)

        self.assertEqual(self.o3.paid_amount, Decimal("0.00"))

        self.assertEqual(result.applied_amount, Decimal("700.00"))
        self.assertEqual(result.unallocated_amount, Decimal("0.00"))
        self.assertEqual([s.order_id for s in result.orders_settled], [self.o1.pk, self.o2.pk])
        self.assertEqual(result.new_balance, Decimal("900.00"))
        self.assertLedgerConsistent()

    def test_ties_on_created_at_break_by_order_number(self):
        same = timezone.now() - timedelta(hours=1)
        Order.objects.filter(pk__in=[self.o1.pk, self.o2.pk, self.o3.pk]).update(created_at=same)

        result = apply_payment(customer_id=self.customer.pk, amount="300.00")
        self.assertEqual(result.orders_settled[0].order_number, "ORD-202401-00001")

    def test_overpayment_leaves_standing_credit(self):
        result = apply_payment(customer_id=self.customer.pk, amount="2000.00")

        self.assertEqual(result.applied_amount, Decimal("1600.00"))
        self.assertEqual(result.unallocated_amount, Decimal("400.00"))
        self.assertEqual(result.new_balance, Decimal("-400.00"))
        self.assertEqual(Order.objects.filter(status=Order.STATUS_PAID).count(), 3)

    def test_draft_and_cancelled_orders_are_skipped(self):
        draft = _order(self.customer, "ORD-202312-00001", "100.00", age_minutes=90, status=Order.STATUS_DRAFT)
        Order.objects.filter(pk=self.o1.pk).update(status=Order.STATUS_CANCELLED)

        result = apply_payment(customer_id=self.customer.pk, amount="100.00")

        draft.refresh_from_db()
        self.assertEqual(draft.paid_amount, Decimal("0.00"))
        self.assertEqual(result.orders_settled[0].order_id, self.o2.pk)

    def test_allocation_legs_sum_to_applied_amount(self):
        result = apply_payment(customer_id=self.customer.pk, amount="650.00")
        legs = PaymentAllocation.objects.filter(payment_id=result.payment_id)
        self.assertEqual(sum(leg.amount for leg in legs), Decimal("650.00"))

    def test_paid_flip_records_payment_source(self):
        result = apply_payment(customer_id=self.customer.pk, amount="500.00")
        history = self.o1.status_history.get(new_status=Order.STATUS_PAID)
        self.assertEqual(history.source_reference, f"Payment:{result.payment_id}")


# ======================================================
# ORDER-LEVEL
# ======================================================


class OrderSettlementTests(SettlementTestBase):
    """
    Order-level settlement.

    GUARANTEES:
    - paid_amount is capped at total
    - excess is NOT routed to other orders
    - (provider, external_id) settles at most once
    """

    def setUp(self):
        super().setUp()
        self.order = _order(self.customer, "ORD-202401-00010", "500.00", age_minutes=10)
        self.other = _order(self.customer, "ORD-202401-00009", "300.00", age_minutes=60)

    def test_excess_becomes_credit_not_routed(self):
        result = apply_payment_to_order(
            customer_id=self.customer.pk, order_id=self.order.pk, amount="650.00"
        )

        self.order.refresh_from_db()
        self.other.refresh_from_db()

        self.assertEqual(self.order.paid_amount, Decimal("500.00"))
        self.assertEqual(self.order.status, Order.STATUS_PAID)
        self.assertEqual(self.other.paid_amount, Decimal("0.00"))
        self.assertEqual(result.unallocated_amount, Decimal("150.00"))
        self.assertEqual(result.new_balance, Decimal("150.00"))
        self.assertLedgerConsistent()

    def test_partial_payment_keeps_status(self):
        apply_payment_to_order(customer_id=self.customer.pk, order_id=self.order.pk, amount="100.00")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_ACCEPTED)
        self.assertEqual(self.order.pending_amount, Decimal("400.00"))

    def test_duplicate_provider_payment_conflicts(self):
        kwargs = {
            "customer_id": self.customer.pk,
            "order_id": self.order.pk,
            "amount": "100.00",
            "provider": Payment.PROVIDER_PAYSTACK,
            "external_id": "ref-123",
        }
        apply_payment_to_order(**kwargs)

        with self.assertRaises(ConflictError) as ctx:
            apply_payment_to_order(**kwargs)

        self.assertEqual(ctx.exception.code, "PAYMENT_ALREADY_APPLIED")
        self.assertEqual(
            LedgerEntry.objects.filter(entry_type=LedgerEntry.CREDIT).count(), 1
        )

    def test_cancelled_order_refuses_payment(self):
        Order.objects.filter(pk=self.order.pk).update(status=Order.STATUS_CANCELLED)
        with self.assertRaises(StateError):
            apply_payment_to_order(
                customer_id=self.customer.pk, order_id=self.order.pk, amount="10.00"
            )

    def test_foreign_order_is_rejected(self):
        stranger = Customer.objects.create(workspace=self.workspace, name="Stranger")
        with self.assertRaises(ValidationError):
            apply_payment_to_order(customer_id=stranger.pk, order_id=self.order.pk, amount="10.00")

    def test_non_positive_amount_is_rejected(self):
        with self.assertRaises(ValidationError):
            apply_payment_to_order(customer_id=self.customer.pk, order_id=self.order.pk, amount="0")


# ======================================================
# STANDING CREDIT SWEEP
# ======================================================


class StandingCreditTests(SettlementTestBase):
    """
    apply_standing_credit.

    GUARANTEES:
    - Only credit the ledger actually holds is swept
    - Money left on a cancelled order is sweepable
    - Credit eaten by later debits is not swept
    - Credit paid against a draft stays with the draft
    - No ledger entry is written and a second sweep applies nothing
    """

    def _sweep(self):
        return apply_standing_credit(customer_id=self.customer.pk)

    def test_order_overpayment_is_swept_oldest_first(self):
        o1 = _order(self.customer, "ORD-202405-00001", "500.00", age_minutes=30)
        o2 = _order(self.customer, "ORD-202405-00002", "300.00", age_minutes=20)
        o3 = _order(self.customer, "ORD-202405-00003", "800.00", age_minutes=10)
        apply_payment_to_order(customer_id=self.customer.pk, order_id=o1.pk, amount="700.00")

        entries_before = LedgerEntry.objects.count()
        result = self._sweep()

        self.assertEqual(LedgerEntry.objects.count(), entries_before)
        self.assertEqual(result.applied_amount, Decimal("200.00"))
        self.assertEqual(result.unallocated_amount, Decimal("0.00"))
        self.assertEqual(result.new_balance, Decimal("900.00"))

        o2.refresh_from_db()
        o3.refresh_from_db()
        self.assertEqual(o2.paid_amount, Decimal("200.00"))
        self.assertEqual(o3.paid_amount, Decimal("0.00"))

        payment = Payment.objects.get(pk=result.payment_id)
        self.assertEqual(payment.provider, Payment.PROVIDER_CREDIT)
        self.assertIsNone(payment.ledger_entry_id)
        legs = PaymentAllocation.objects.filter(payment=payment)
        self.assertEqual(sum(leg.amount for leg in legs), Decimal("200.00"))

        self.assertEqual(self._sweep().applied_amount, Decimal("0.00"))
        self.assertLedgerConsistent()

    def test_money_on_cancelled_order_is_swept(self):
        a = _order(self.customer, "ORD-202405-00010", "500.00", age_minutes=30)
        apply_payment_to_order(customer_id=self.customer.pk, order_id=a.pk, amount="200.00")
        cancel_order(order_id=a.pk, reason="Customer changed mind")
        b = _order(self.customer, "ORD-202405-00011", "100.00", age_minutes=10)

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.current_balance, Decimal("-100.00"))

        result = self._sweep()

        self.assertEqual(result.applied_amount, Decimal("100.00"))
        self.assertEqual(result.unallocated_amount, Decimal("100.00"))
        b.refresh_from_db()
        self.assertEqual(b.paid_amount, Decimal("100.00"))
        self.assertEqual(b.status, Order.STATUS_PAID)
        self.assertEqual(
            b.status_history.get(new_status=Order.STATUS_PAID).source_reference,
            f"Payment:{result.payment_id}",
        )

    def test_credit_eaten_by_later_debit_is_not_swept(self):
        a = _order(self.customer, "ORD-202405-00020", "500.00", age_minutes=30)
        apply_payment_to_order(customer_id=self.customer.pk, order_id=a.pk, amount="700.00")
        create_adjustment(
            customer_id=self.customer.pk,
            entry_type=LedgerEntry.DEBIT,
            amount="500.00",
            reason="Returned cheque fee",
        )
        b = _order(self.customer, "ORD-202405-00021", "200.00", age_minutes=10)

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.current_balance, Decimal("500.00"))

        result = self._sweep()

        self.assertEqual(result.applied_amount, Decimal("0.00"))
        self.assertIsNone(result.payment_id)
        b.refresh_from_db()
        self.assertEqual(b.paid_amount, Decimal("0.00"))
        self.assertEqual(b.status, Order.STATUS_ACCEPTED)
        self.assertFalse(Payment.objects.filter(provider=Payment.PROVIDER_CREDIT).exists())

    def test_credit_paid_on_draft_stays_with_draft(self):
        draft = _order(self.customer, "ORD-202405-00030", "300.00", status=Order.STATUS_DRAFT)
        apply_payment_to_order(customer_id=self.customer.pk, order_id=draft.pk, amount="300.00")
        other = _order(self.customer, "ORD-202405-00031", "200.00", age_minutes=10)

        result = self._sweep()

        self.assertEqual(result.applied_amount, Decimal("0.00"))
        other.refresh_from_db()
        self.assertEqual(other.paid_amount, Decimal("0.00"))

    def test_sweep_cannot_be_reversed_as_a_payment(self):
        a = _order(self.customer, "ORD-202405-00040", "500.00", age_minutes=30)
        _order(self.customer, "ORD-202405-00041", "100.00", age_minutes=10)
        apply_payment_to_order(customer_id=self.customer.pk, order_id=a.pk, amount="600.00")

        result = self._sweep()

        with self.assertRaises(StateError):
            reverse_payment(payment_id=result.payment_id)


# ======================================================
# REVERSAL
# ======================================================


class PaymentReversalTests(SettlementTestBase):
    """
    GUARANTEES:
    - A reversal debits the full payment amount
    - Every allocation leg comes off its order
    - A paid flip caused by the payment is undone
    """

    def setUp(self):
        super().setUp()
        self.o1 = _order(self.customer, "ORD-202401-00001", "500.00", age_minutes=30)
        self.o2 = _order(self.customer, "ORD-202401-00002", "300.00", age_minutes=20)

    def test_reversal_restores_orders_and_balance(self):
        paid = apply_payment(customer_id=self.customer.pk, amount="700.00")
        reversal = reverse_payment(payment_id=paid.payment_id, reason="Chargeback")

        self.o1.refresh_from_db()
        self.o2.refresh_from_db()

        self.assertEqual(self.o1.paid_amount, Decimal("0.00"))
        self.assertEqual(self.o1.status, Order.STATUS_ACCEPTED)
        self.assertIsNone(self.o1.paid_at)
        self.assertEqual(self.o2.paid_amount, Decimal("0.00"))

        self.assertEqual(reversal.reversed_amount, Decimal("700.00"))
        self.assertEqual(reversal.new_balance, Decimal("800.00"))
        self.assertEqual(Payment.objects.get(pk=paid.payment_id).status, Payment.STATUS_REVERSED)
        self.assertLedgerConsistent()

    def test_reversing_twice_is_a_state_error(self):
        paid = apply_payment(customer_id=self.customer.pk, amount="100.00")
        reverse_payment(payment_id=paid.payment_id)
        with self.assertRaises(StateError):
            reverse_payment(payment_id=paid.payment_id)


# ======================================================
# API
# ======================================================


class LedgerApiTests(SettlementTestBase):
    """
    GUARANTEES:
    - Manual payments settle through the API
    - Domain errors come back in the {"error": {...}} envelope
    - Corrections are admin-only
    """

    def setUp(self):
        super().setUp()
        self.order = _order(self.customer, "ORD-202401-00001", "500.00")
        self.user = User.objects.create_user(username="cashier", password="password123")
        self.admin = User.objects.create_user(
            username="boss", password="password123", is_staff=True
        )
        self.client = APIClient()

    def test_account_payment_endpoint(self):
        self.client.force_authenticate(self.user)
        res = self.client.post(
            reverse("ledger-payments"),
            {"customer_id": str(self.customer.pk), "amount": "200.00", "method": "cash"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_201_CREATED, res.data)
        self.assertEqual(Decimal(str(res.data["new_balance"])), Decimal("300.00"))

    def test_customer_balance_endpoint(self):
        self.client.force_authenticate(self.user)
        res = self.client.get(reverse("customers-balance", args=[self.customer.pk]))
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertTrue(res.data["has_debt"])

    def test_write_off_requires_admin(self):
        self.client.force_authenticate(self.user)
        res = self.client.post(
            reverse("ledger-write-offs"), {"customer_id": str(self.customer.pk)}, format="json"
        )
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        res = self.client.post(
            reverse("ledger-write-offs"), {"customer_id": str(self.customer.pk)}, format="json"
        )
        self.assertEqual(res.status_code, status.HTTP_201_CREATED, res.data)

    def test_unknown_customer_uses_error_envelope(self):
        self.client.force_authenticate(self.user)
        res = self.client.post(
            reverse("ledger-payments"),
            {"customer_id": "00000000-0000-0000-0000-000000000000", "amount": "10.00"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(res.data["error"]["code"], "CUSTOMER_NOT_FOUND")
