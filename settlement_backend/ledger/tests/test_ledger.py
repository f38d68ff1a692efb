# ledger/tests/test_ledger.py

from __future__ import annotations

from decimal import Decimal
from io import StringIO

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.management import call_command
from django.test import TestCase

from common.exceptions import NotFoundError, ValidationError
from customers.models import Customer
from ledger.models import LedgerEntry
from ledger.services.balance_service import ledger_balance, verify_customer_balance
from ledger.services.ledger_service import (
    append_entry,
    create_adjustment,
    get_customer_balance,
    get_ledger_history,
    recompute_balance_from_ledger,
    write_off_debt,
)
from workspaces.models import Workspace


def _customer(name="Ana Torres"):
    workspace = Workspace.objects.create(name="Main workspace", slug=f"ws-{name[:3].lower()}")
    return Customer.objects.create(workspace=workspace, name=name)


# ======================================================
# APPEND
# ======================================================


class LedgerAppendTests(TestCase):
    """
    Ledger store tests.

    GUARANTEES:
    - Debits raise the balance, credits lower it
    - balance_after on every row equals the running balance
    - Non-positive amounts and unknown types are rejected
    - current_balance always equals the ledger sum
    """

    def setUp(self):
        self.customer = _customer()

    def test_debit_then_credit_moves_balance(self):
        first = append_entry(
            customer_id=self.customer.pk,
            entry_type=LedgerEntry.DEBIT,
            amount="500.00",
            reference_type=LedgerEntry.REF_ADJUSTMENT,
        )
        second = append_entry(
            customer_id=self.customer.pk,
            entry_type=LedgerEntry.CREDIT,
            amount=Decimal("200.00"),
            reference_type=LedgerEntry.REF_PAYMENT,
        )

        self.assertEqual(first.previous_balance, Decimal("0.00"))
        self.assertEqual(first.new_balance, Decimal("500.00"))
        self.assertEqual(second.previous_balance, Decimal("500.00"))
        self.assertEqual(second.new_balance, Decimal("300.00"))

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.current_balance, Decimal("300.00"))

        rows = list(LedgerEntry.objects.filter(customer=self.customer).order_by("created_at"))
        self.assertEqual([r.balance_after for r in rows], [Decimal("500.00"), Decimal("300.00")])

    def test_credit_can_go_negative_as_standing_credit(self):
        result = append_entry(
            customer_id=self.customer.pk,
            entry_type=LedgerEntry.CREDIT,
            amount="75.50",
            reference_type=LedgerEntry.REF_PAYMENT,
        )
        self.assertEqual(result.new_balance, Decimal("-75.50"))
        balance = get_customer_balance(customer_id=self.customer.pk)
        self.assertTrue(balance["has_credit_balance"])
        self.assertFalse(balance["has_debt"])

    def test_rejects_zero_and_negative_amounts(self):
        for bad in ("0", "-10.00"):
            with self.assertRaises(ValidationError):
                append_entry(
                    customer_id=self.customer.pk,
                    entry_type=LedgerEntry.DEBIT,
                    amount=bad,
                    reference_type=LedgerEntry.REF_ADJUSTMENT,
                )
        self.assertEqual(LedgerEntry.objects.count(), 0)

    def test_rejects_unknown_entry_type(self):
        with self.assertRaises(ValidationError) as ctx:
            append_entry(
                customer_id=self.customer.pk,
                entry_type="refund",
                amount="10.00",
                reference_type=LedgerEntry.REF_ADJUSTMENT,
            )
        self.assertEqual(ctx.exception.code, "INVALID_ENTRY_TYPE")

    def test_missing_customer_is_not_found(self):
        with self.assertRaises(NotFoundError):
            append_entry(
                customer_id="00000000-0000-0000-0000-000000000000",
                entry_type=LedgerEntry.DEBIT,
                amount="10.00",
                reference_type=LedgerEntry.REF_ADJUSTMENT,
            )

    def test_balance_matches_ledger_sum_after_mixed_entries(self):
        for entry_type, amount in (
            (LedgerEntry.DEBIT, "120.00"),
            (LedgerEntry.DEBIT, "80.25"),
            (LedgerEntry.CREDIT, "50.00"),
            (LedgerEntry.CREDIT, "200.00"),
            (LedgerEntry.DEBIT, "0.75"),
        ):
            append_entry(
                customer_id=self.customer.pk,
                entry_type=entry_type,
                amount=amount,
                reference_type=LedgerEntry.REF_ADJUSTMENT,
            )

        check = verify_customer_balance(self.customer)
        self.assertTrue(check.is_consistent)
        self.assertEqual(check.ledger_balance, Decimal("-49.00"))


# ======================================================
# IMMUTABILITY
# ======================================================


class LedgerImmutabilityTests(TestCase):
    """
    GUARANTEES:
    - Saved ledger rows cannot be modified or deleted
    """

    def setUp(self):
        self.customer = _customer()
        result = append_entry(
            customer_id=self.customer.pk,
            entry_type=LedgerEntry.DEBIT,
            amount="10.00",
            reference_type=LedgerEntry.REF_ADJUSTMENT,
        )
        self.entry = LedgerEntry.objects.get(pk=result.entry_id)

    def test_update_is_refused(self):
        self.entry.amount = Decimal("99.00")
        with self.assertRaises(DjangoValidationError):
            self.entry.save()

    def test_delete_is_refused(self):
        with self.assertRaises(DjangoValidationError):
            self.entry.delete()
        self.assertTrue(LedgerEntry.objects.filter(pk=self.entry.pk).exists())


# ======================================================
# CORRECTIONS / REPAIR
# ======================================================


class LedgerCorrectionTests(TestCase):
    """
    GUARANTEES:
    - Adjustments require a reason
    - Write-offs never exceed current debt
    - A drifted cache can be rebuilt from the ledger
    """

    def setUp(self):
        self.customer = _customer()
        append_entry(
            customer_id=self.customer.pk,
            entry_type=LedgerEntry.DEBIT,
            amount="300.00",
            reference_type=LedgerEntry.REF_ADJUSTMENT,
        )

    def test_adjustment_requires_reason(self):
        with self.assertRaises(ValidationError) as ctx:
            create_adjustment(
                customer_id=self.customer.pk,
                entry_type=LedgerEntry.CREDIT,
                amount="10.00",
                reason="   ",
            )
        self.assertEqual(ctx.exception.code, "REASON_REQUIRED")

    def test_write_off_is_capped_at_debt(self):
        result = write_off_debt(customer_id=self.customer.pk, amount="1000.00", reason="Bad debt")
        self.assertEqual(result.new_balance, Decimal("0.00"))

        entry = LedgerEntry.objects.get(pk=result.entry_id)
        self.assertEqual(entry.amount, Decimal("300.00"))
        self.assertEqual(entry.reference_type, LedgerEntry.REF_WRITE_OFF)

    def test_write_off_without_debt_fails(self):
        write_off_debt(customer_id=self.customer.pk)
        with self.assertRaises(ValidationError) as ctx:
            write_off_debt(customer_id=self.customer.pk)
        self.assertEqual(ctx.exception.code, "NO_DEBT")

    def test_recompute_repairs_drift(self):
        Customer.objects.filter(pk=self.customer.pk).update(current_balance=Decimal("12.34"))

        check = recompute_balance_from_ledger(customer_id=self.customer.pk)
        self.assertFalse(check.is_consistent)

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.current_balance, ledger_balance(self.customer.pk))
        self.assertEqual(self.customer.current_balance, Decimal("300.00"))

    def test_history_is_newest_first_and_filterable(self):
        append_entry(
            customer_id=self.customer.pk,
            entry_type=LedgerEntry.CREDIT,
            amount="50.00",
            reference_type=LedgerEntry.REF_PAYMENT,
        )
        history = get_ledger_history(customer_id=self.customer.pk)
        self.assertEqual(history["count"], 2)

        credits = get_ledger_history(customer_id=self.customer.pk, entry_type="credit")
        self.assertEqual(credits["count"], 1)
        self.assertEqual(credits["results"][0].amount, Decimal("50.00"))


# ======================================================
# SCHEMA
# ======================================================


class MigrationStateTests(TestCase):
    """
    GUARANTEES:
    - The committed migrations describe every model exactly
      (makemigrations finds nothing to write)
    """

    def test_models_have_no_pending_migrations(self):
        out = StringIO()
        try:
            call_command("makemigrations", "--check", "--dry-run", stdout=out, stderr=out)
        except SystemExit:
            self.fail(f"Models changed without a migration:\n{out.getvalue()}")
