# receipts/tests/test_receipts.py

from __future__ import annotations

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from common.exceptions import DependencyError, StateError, ValidationError
from customers.models import Customer
from ledger.models import LedgerEntry
from ledger.services.ledger_service import create_order_debit
from notifications.models import Notification
from orders.models import Order
from payments.models import Payment
from receipts.models import Receipt
from receipts.services.receipt_service import (
    DuplicateReceiptError,
    apply_receipt,
    delete_receipt,
    reject_receipt,
    upload_receipt,
)
from receipts.services.vision import VisionExtraction
from workspaces.models import Workspace

User = get_user_model()

TEST_STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.InMemoryStorage"},
    "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
}

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-transfer-receipt"


class FakeVision:
    def __init__(self, *, amount_cents=None, confidence="0.950", error=None):
        self.amount_cents = amount_cents
        self.confidence = Decimal(confidence)
        self.error = error

    def extract(self, content, file_type):
        if self.error is not None:
            raise self.error
        return VisionExtraction(
            amount_cents=self.amount_cents,
            confidence=self.confidence,
            extracted_text="TRANSFERENCIA $ 300,00",
        )


@override_settings(STORAGES=TEST_STORAGES)
class ReceiptTestBase(TestCase):
    def setUp(self):
        self.workspace = Workspace.objects.create(name="Receipts WS", slug="rcpt")
        self.customer = Customer.objects.create(workspace=self.workspace, name="Sofia Vera")
        self.order = Order.objects.create(
            workspace=self.workspace,
            customer=self.customer,
            order_number="ORD-202402-00001",
            status=Order.STATUS_ACCEPTED,
            subtotal=Decimal("300.00"),
            total=Decimal("300.00"),
        )
        create_order_debit(order=self.order)

    def _upload(self, content=PNG_BYTES, **kwargs):
        kwargs.setdefault("file_name", "receipt.png")
        kwargs.setdefault("file_type", "image/png")
        return upload_receipt(customer_id=self.customer.pk, content=content, **kwargs)

    def _balance(self):
        self.customer.refresh_from_db()
        return self.customer.current_balance


# ======================================================
# UPLOAD
# ======================================================


class ReceiptUploadTests(ReceiptTestBase):
    """
    Receipt upload.

    GUARANTEES:
    - A plain upload waits for review and notifies staff
    - The same file cannot be uploaded twice for a customer
    - Declared amounts and confident extractions auto-apply to a named order
    - A vision failure never blocks the upload
    """

    def test_upload_waits_for_review(self):
        with self.captureOnCommitCallbacks(execute=True):
            receipt = self._upload()

        self.assertEqual(receipt.status, Receipt.STATUS_PENDING_REVIEW)
        self.assertEqual(receipt.file_size_bytes, len(PNG_BYTES))
        self.assertEqual(len(receipt.file_hash), 64)
        self.assertEqual(self._balance(), Decimal("300.00"))
        self.assertTrue(
            Notification.objects.filter(kind=Notification.KIND_RECEIPT_UPLOADED).exists()
        )

    def test_duplicate_file_is_rejected(self):
        self._upload()
        with self.assertRaises(DuplicateReceiptError) as ctx:
            self._upload()
        self.assertEqual(ctx.exception.code, "DUPLICATE_RECEIPT")
        self.assertEqual(Receipt.objects.count(), 1)

    def test_unsupported_type(self):
        with self.assertRaises(ValidationError):
            self._upload(file_name="notes.txt", file_type="text/plain")

    def test_declared_amount_auto_applies(self):
        receipt = self._upload(order_id=self.order.pk, declared_amount="300.00")

        self.assertEqual(receipt.status, Receipt.STATUS_APPLIED)
        self.assertEqual(receipt.applied_amount, Decimal("300.00"))
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_PAID)
        self.assertEqual(self._balance(), Decimal("0.00"))

        entry = LedgerEntry.objects.get(pk=receipt.ledger_entry_id)
        self.assertEqual(entry.reference_type, LedgerEntry.REF_RECEIPT)
        self.assertEqual(entry.reference_id, str(receipt.pk))

    def test_confident_extraction_auto_applies(self):
        receipt = self._upload(
            order_id=self.order.pk,
            vision_client=FakeVision(amount_cents=12000, confidence="0.910"),
        )

        self.assertEqual(receipt.status, Receipt.STATUS_APPLIED)
        self.assertEqual(receipt.extracted_amount, Decimal("120.00"))
        self.order.refresh_from_db()
        self.assertEqual(self.order.paid_amount, Decimal("120.00"))

    def test_low_confidence_waits_for_review(self):
        receipt = self._upload(
            order_id=self.order.pk,
            vision_client=FakeVision(amount_cents=12000, confidence="0.500"),
        )

        self.assertEqual(receipt.status, Receipt.STATUS_PENDING_REVIEW)
        self.assertEqual(receipt.resolved_amount, Decimal("120.00"))
        self.assertEqual(self._balance(), Decimal("300.00"))

    def test_vision_failure_keeps_receipt(self):
        vision = FakeVision(error=DependencyError("Vision timed out", code="VISION_TIMEOUT"))

        with self.assertLogs("receipts.services.receipt_service", level="ERROR"):
            receipt = self._upload(order_id=self.order.pk, vision_client=vision)

        self.assertEqual(receipt.status, Receipt.STATUS_PENDING_REVIEW)
        self.assertIsNone(receipt.extracted_amount)


# ======================================================
# REVIEW
# ======================================================


class ReceiptReviewTests(ReceiptTestBase):
    """
    GUARANTEES:
    - apply settles through the ledger; reject does not touch money
    - applied and rejected are terminal
    """

    def test_apply_requires_an_amount(self):
        receipt = self._upload()
        with self.assertRaises(ValidationError) as ctx:
            apply_receipt(receipt_id=receipt.pk)
        self.assertEqual(ctx.exception.code, "AMOUNT_REQUIRED")

    def test_apply_without_order_goes_fifo(self):
        receipt = self._upload()
        applied = apply_receipt(receipt_id=receipt.pk, amount="100.00")

        self.assertEqual(applied.status, Receipt.STATUS_APPLIED)
        self.order.refresh_from_db()
        self.assertEqual(self.order.paid_amount, Decimal("100.00"))
        self.assertEqual(self._balance(), Decimal("200.00"))

        payment = Payment.objects.get(provider=Payment.PROVIDER_RECEIPT)
        self.assertEqual(payment.external_id, str(receipt.pk))

    def test_terminal_states(self):
        applied = apply_receipt(receipt_id=self._upload().pk, amount="10.00")
        with self.assertRaises(StateError):
            apply_receipt(receipt_id=applied.pk, amount="10.00")
        with self.assertRaises(StateError):
            reject_receipt(receipt_id=applied.pk)

        other = self._upload(content=b"%PDF-1.4 other", file_name="r.pdf", file_type="application/pdf")
        rejected = reject_receipt(receipt_id=other.pk, reason="Blurry")
        self.assertEqual(rejected.rejection_reason, "Blurry")
        with self.assertRaises(StateError) as ctx:
            apply_receipt(receipt_id=rejected.pk, amount="10.00")
        self.assertEqual(ctx.exception.code, "RECEIPT_NOT_PENDING")


# ======================================================
# DELETE / REVERSAL
# ======================================================


class ReceiptDeletionTests(ReceiptTestBase):
    """
    GUARANTEES:
    - Deleting an applied receipt reverses its money exactly
    - A paid flip caused by the receipt is undone
    - Deleting a pending receipt touches no money
    """

    def test_delete_applied_reverses(self):
        receipt = self._upload(order_id=self.order.pk, declared_amount="300.00")
        self.assertEqual(self._balance(), Decimal("0.00"))

        with self.captureOnCommitCallbacks(execute=True):
            result = delete_receipt(receipt_id=receipt.pk)

        self.assertTrue(result["reversed"])
        self.assertEqual(result["reversed_amount"], Decimal("300.00"))
        self.assertFalse(Receipt.objects.filter(pk=receipt.pk).exists())

        self.order.refresh_from_db()
        self.assertEqual(self.order.paid_amount, Decimal("0.00"))
        self.assertEqual(self.order.status, Order.STATUS_ACCEPTED)
        self.assertEqual(self._balance(), Decimal("300.00"))

        reversal = LedgerEntry.objects.get(pk=result["reversal_entry_id"])
        self.assertEqual(reversal.reference_type, LedgerEntry.REF_RECEIPT_REVERSAL)
        self.assertEqual(reversal.entry_type, LedgerEntry.DEBIT)
        self.assertEqual(
            Payment.objects.get(provider=Payment.PROVIDER_RECEIPT).status,
            Payment.STATUS_REVERSED,
        )

    def test_delete_pending_has_no_reversal(self):
        receipt = self._upload()
        result = delete_receipt(receipt_id=receipt.pk)

        self.assertFalse(result["reversed"])
        self.assertEqual(LedgerEntry.objects.filter(entry_type=LedgerEntry.DEBIT).count(), 1)

    def test_manual_status_change_after_paid_is_kept(self):
        receipt = self._upload(order_id=self.order.pk, declared_amount="300.00")
        Order.objects.filter(pk=self.order.pk).update(status=Order.STATUS_SHIPPED)

        delete_receipt(receipt_id=receipt.pk)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_SHIPPED)
        self.assertEqual(self.order.paid_amount, Decimal("0.00"))


# ======================================================
# API
# ======================================================


class ReceiptApiTests(ReceiptTestBase):
    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.client.force_authenticate(User.objects.create_user(username="clerk", password="pw12345"))

    def test_multipart_upload_and_apply(self):
        upload = SimpleUploadedFile("transfer.png", PNG_BYTES, content_type="image/png")
        res = self.client.post(
            reverse("receipts-list"),
            {"customer_id": str(self.customer.pk), "file": upload},
            format="multipart",
        )
        self.assertEqual(res.status_code, status.HTTP_201_CREATED, res.data)
        self.assertEqual(res.data["status"], Receipt.STATUS_PENDING_REVIEW)

        res = self.client.post(
            reverse("receipts-apply", args=[res.data["id"]]),
            {"order_id": str(self.order.pk), "amount": "300.00"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_200_OK, res.data)
        self.assertEqual(res.data["status"], Receipt.STATUS_APPLIED)
        self.assertEqual(self._balance(), Decimal("0.00"))

    def test_delete_endpoint(self):
        receipt = self._upload(order_id=self.order.pk, declared_amount="300.00")
        res = self.client.delete(reverse("receipts-detail", args=[receipt.pk]))

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertTrue(res.data["reversed"])
