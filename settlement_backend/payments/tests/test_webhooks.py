# payments/tests/test_webhooks.py

from __future__ import annotations

import hashlib
import hmac
import json
import uuid
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.apps import apps
from django.core.exceptions import ImproperlyConfigured
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from customers.models import Customer
from ledger.models import LedgerEntry
from ledger.services.ledger_service import create_order_debit
from orders.models import Order
from payments.models import Payment, WebhookInbox
from payments.services.adapters import MercadoPagoAdapter, PaystackAdapter
from payments.services.events import PaymentApproved, PaymentIgnored, PaymentPending
from payments.services.idempotency import record_inbound
from payments.services.processor import WebhookProcessor, retry_failed
from payments.services.queue import DeferredInboxQueue, ImmediateInboxQueue, build_inbox_queue
from workspaces.models import Workspace

PAYSTACK_SECRET = "sk_test_paystack"
MP_SECRET = "mp-webhook-secret"

PAYMENTS_TEST = {
    "MERCADOPAGO": {"ACCESS_TOKEN": "", "WEBHOOK_SECRET": MP_SECRET},
    "PAYSTACK": {"SECRET_KEY": PAYSTACK_SECRET},
    "TIMEOUT_SECONDS": 2,
}


def _paystack_body(*, reference, order=None, customer=None, amount_kobo=50000, data_id=1001):
    metadata = {}
    if order is not None:
        metadata["order_id"] = str(order.pk)
    if customer is not None:
        metadata["customer_id"] = str(customer.pk)
    return json.dumps(
        {
            "event": "charge.success",
            "data": {
                "id": data_id,
                "reference": reference,
                "amount": amount_kobo,
                "currency": "NGN",
                "channel": "card",
                "status": "success",
                "metadata": metadata,
            },
        }
    ).encode("utf-8")


def _paystack_sign(body: bytes, secret=PAYSTACK_SECRET) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha512).hexdigest()


class FakeMercadoPagoClient:
    def __init__(self, payment: dict):
        self.payment = payment
        self.calls = []

    def get_payment(self, payment_id):
        self.calls.append(payment_id)
        return self.payment


class WebhookTestBase(TestCase):
    def setUp(self):
        self.workspace = Workspace.objects.create(name="Webhook WS", slug="hooks")
        self.customer = Customer.objects.create(workspace=self.workspace, name="Lucia Gomez")
        self.order = Order.objects.create(
            workspace=self.workspace,
            customer=self.customer,
            order_number="ORD-202401-00001",
            status=Order.STATUS_ACCEPTED,
            subtotal=Decimal("500.00"),
            total=Decimal("500.00"),
        )
        create_order_debit(order=self.order)


# ======================================================
# HTTP EDGE
# ======================================================


@override_settings(PAYMENTS=PAYMENTS_TEST)
class PaystackWebhookEndpointTests(WebhookTestBase):
    """
    Paystack webhook endpoint.

    GUARANTEES:
    - Bad signature -> 401, nothing stored
    - Redelivery is absorbed: one inbox row, one payment, one ledger credit
    - Unknown workspace -> 200, nothing stored
    """

    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.config = apps.get_app_config("payments")
        self._queue = self.config.inbox_queue
        self.config.inbox_queue = ImmediateInboxQueue()

    def tearDown(self):
        self.config.inbox_queue = self._queue
        super().tearDown()

    def _post(self, body: bytes, *, workspace_id=None, signature=None):
        url = reverse(
            "payments:paystack-webhook",
            kwargs={"workspace_id": workspace_id or self.workspace.pk},
        )
        return self.client.post(
            url,
            data=body,
            content_type="application/json",
            HTTP_X_PAYSTACK_SIGNATURE=signature if signature is not None else _paystack_sign(body),
        )

    def test_three_deliveries_settle_once(self):
        body = _paystack_body(reference="PSK-001", order=self.order)

        with self.captureOnCommitCallbacks(execute=True):
            first = self._post(body)
        with self.captureOnCommitCallbacks(execute=True):
            second = self._post(body)
            third = self._post(body)

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(first.data["detail"], "queued")
        self.assertEqual(second.data["detail"], "duplicate")
        self.assertEqual(third.data["detail"], "duplicate")

        self.assertEqual(WebhookInbox.objects.count(), 1)
        self.assertEqual(Payment.objects.filter(provider=Payment.PROVIDER_PAYSTACK).count(), 1)
        self.assertEqual(
            LedgerEntry.objects.filter(
                customer=self.customer, entry_type=LedgerEntry.CREDIT
            ).count(),
            1,
        )

        inbox = WebhookInbox.objects.get()
        self.assertEqual(inbox.status, WebhookInbox.STATUS_PROCESSED)
        self.assertEqual(inbox.result["outcome"], "settled")

        self.order.refresh_from_db()
        self.assertEqual(self.order.paid_amount, Decimal("500.00"))
        self.assertEqual(self.order.status, Order.STATUS_PAID)

    def test_bad_signature_is_401_and_stores_nothing(self):
        body = _paystack_body(reference="PSK-002", order=self.order)
        res = self._post(body, signature=_paystack_sign(body, secret="wrong"))

        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(res.data["ok"])
        self.assertEqual(WebhookInbox.objects.count(), 0)

    def test_missing_signature_is_401(self):
        body = _paystack_body(reference="PSK-003", order=self.order)
        res = self._post(body, signature="")
        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_unknown_workspace_is_acknowledged_but_not_stored(self):
        body = _paystack_body(reference="PSK-004", order=self.order)
        res = self._post(body, workspace_id=uuid.uuid4())

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["detail"], "unknown workspace")
        self.assertEqual(WebhookInbox.objects.count(), 0)

    def test_account_payment_goes_fifo(self):
        body = _paystack_body(reference="PSK-005", customer=self.customer, amount_kobo=20000)
        with self.captureOnCommitCallbacks(execute=True):
            self._post(body)

        self.order.refresh_from_db()
        self.customer.refresh_from_db()
        self.assertEqual(self.order.paid_amount, Decimal("200.00"))
        self.assertEqual(self.customer.current_balance, Decimal("300.00"))


# ======================================================
# WORKER
# ======================================================


@override_settings(PAYMENTS=PAYMENTS_TEST)
class WebhookProcessorTests(WebhookTestBase):
    """
    GUARANTEES:
    - A processed row is never processed twice
    - The same provider payment arriving as a new notification is a
      duplicate, not a failure
    - Domain failures mark the row failed and bump retry_count
    """

    def _inbox(self, body: bytes):
        adapter = PaystackAdapter()
        payload = json.loads(body)
        key = adapter.inbox_key(payload)
        return record_inbound(
            provider=adapter.provider,
            workspace_id=self.workspace.pk,
            external_id=key.external_id,
            event_type=key.event_type,
            payload=payload,
        ).entry

    def test_processed_row_is_not_reclaimed(self):
        entry = self._inbox(_paystack_body(reference="PSK-100", order=self.order))
        processor = WebhookProcessor()

        self.assertEqual(processor.process(entry.pk).status, WebhookInbox.STATUS_PROCESSED)
        self.assertIsNone(processor.process(entry.pk))
        self.assertEqual(Payment.objects.count(), 1)

    def test_same_reference_in_new_notification_is_duplicate(self):
        first = self._inbox(_paystack_body(reference="PSK-101", order=self.order, data_id=1))
        second = self._inbox(_paystack_body(reference="PSK-101", order=self.order, data_id=2))
        processor = WebhookProcessor()

        processor.process(first.pk)
        entry = processor.process(second.pk)

        self.assertEqual(entry.status, WebhookInbox.STATUS_PROCESSED)
        self.assertEqual(entry.result["outcome"], "duplicate")
        self.assertEqual(Payment.objects.count(), 1)

    def test_unknown_order_marks_row_failed(self):
        body = json.loads(_paystack_body(reference="PSK-102", order=self.order))
        body["data"]["metadata"]["order_id"] = str(uuid.uuid4())
        entry = self._inbox(json.dumps(body).encode("utf-8"))

        result = WebhookProcessor().process(entry.pk)

        self.assertEqual(result.status, WebhookInbox.STATUS_FAILED)
        self.assertEqual(result.retry_count, 1)
        self.assertTrue(result.error_message.startswith("ORDER_NOT_FOUND"))
        self.assertEqual(Payment.objects.count(), 0)

    def test_retry_failed_replays_under_ceiling(self):
        entry = self._inbox(_paystack_body(reference="PSK-103", order=self.order))
        WebhookInbox.objects.filter(pk=entry.pk).update(
            status=WebhookInbox.STATUS_FAILED, retry_count=1
        )
        exhausted = self._inbox(_paystack_body(reference="PSK-104", order=self.order, data_id=9))
        WebhookInbox.objects.filter(pk=exhausted.pk).update(
            status=WebhookInbox.STATUS_FAILED, retry_count=5
        )

        replayed = retry_failed(max_retries=5)

        self.assertEqual(replayed, 1)
        entry.refresh_from_db()
        self.assertEqual(entry.status, WebhookInbox.STATUS_PROCESSED)

    def test_stale_processing_rows_are_retried(self):
        entry = self._inbox(_paystack_body(reference="PSK-105", order=self.order))
        WebhookInbox.objects.filter(pk=entry.pk).update(
            status=WebhookInbox.STATUS_PROCESSING,
            last_attempt_at=timezone.now() - timedelta(hours=1),
        )
        self.assertEqual(retry_failed(), 1)

    def test_deferred_queue_leaves_row_pending(self):
        entry = self._inbox(_paystack_body(reference="PSK-106", order=self.order))
        with self.captureOnCommitCallbacks(execute=True):
            DeferredInboxQueue().enqueue(entry.pk)
        entry.refresh_from_db()
        self.assertEqual(entry.status, WebhookInbox.STATUS_PENDING)


# ======================================================
# MERCADOPAGO EDGE
# ======================================================


def _mp_signature(data_id, request_id="req-1", ts="1700000000", secret=MP_SECRET):
    manifest = f"id:{data_id};request-id:{request_id};ts:{ts};"
    v1 = hmac.new(secret.encode("utf-8"), manifest.encode("utf-8"), hashlib.sha256).hexdigest()
    return f"ts={ts},v1={v1}"


@override_settings(PAYMENTS=PAYMENTS_TEST)
class MercadoPagoWebhookEndpointTests(WebhookTestBase):
    """
    MercadoPago webhook endpoint under the production (deferred) queue.

    GUARANTEES:
    - The request only verifies, stores and acknowledges
    - The payment lookup against MercadoPago happens in the worker
    - Production settings refuse the immediate queue
    """

    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.config = apps.get_app_config("payments")
        self._queue = self.config.inbox_queue
        self.config.inbox_queue = DeferredInboxQueue()

    def tearDown(self):
        self.config.inbox_queue = self._queue
        super().tearDown()

    def _post(self, data_id="555"):
        body = json.dumps(
            {
                "id": 9001,
                "type": "payment",
                "action": "payment.created",
                "data": {"id": data_id},
            }
        ).encode("utf-8")
        return self.client.post(
            reverse("payments:mercadopago-webhook", kwargs={"workspace_id": self.workspace.pk}),
            data=body,
            content_type="application/json",
            HTTP_X_SIGNATURE=_mp_signature(data_id),
            HTTP_X_REQUEST_ID="req-1",
        )

    def test_request_never_calls_provider(self):
        with patch("payments.services.adapters.mercadopago.MercadoPagoClient") as client_cls:
            with self.captureOnCommitCallbacks(execute=True):
                res = self._post()

        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["detail"], "queued")
        client_cls.assert_not_called()

        entry = WebhookInbox.objects.get()
        self.assertEqual(entry.status, WebhookInbox.STATUS_PENDING)
        self.assertEqual(Payment.objects.count(), 0)

    def test_worker_fetches_and_settles(self):
        with self.captureOnCommitCallbacks(execute=True):
            res = self._post()

        fake = FakeMercadoPagoClient(
            {
                "id": 555,
                "status": "approved",
                "transaction_amount": 500,
                "currency_id": "ARS",
                "external_reference": f"{self.workspace.pk}:{self.order.pk}",
            }
        )
        processor = WebhookProcessor(
            adapter_factory=lambda provider: MercadoPagoAdapter(secret=MP_SECRET, client=fake)
        )
        entry = processor.process(res.data["inbox_id"])

        self.assertEqual(entry.status, WebhookInbox.STATUS_PROCESSED)
        self.assertEqual(fake.calls, ["555"])
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_PAID)

    @override_settings(WEBHOOK_QUEUE_ALLOWED_BACKENDS=["deferred"])
    def test_production_backends_refuse_immediate(self):
        with self.assertRaises(ImproperlyConfigured):
            build_inbox_queue("immediate")
        self.assertIsInstance(build_inbox_queue("deferred"), DeferredInboxQueue)


# ======================================================
# ADAPTERS
# ======================================================


class MercadoPagoAdapterTests(WebhookTestBase):
    """
    GUARANTEES:
    - x-signature is verified against the id/request-id/ts manifest
    - Only approved payments become PaymentApproved
    - external_reference routes to an order or an account
    """

    def _signature(self, data_id, request_id="req-1", ts="1700000000", secret=MP_SECRET):
        manifest = f"id:{data_id};request-id:{request_id};ts:{ts};"
        v1 = hmac.new(secret.encode("utf-8"), manifest.encode("utf-8"), hashlib.sha256).hexdigest()
        return f"ts={ts},v1={v1}"

    def test_signature_verifies(self):
        adapter = MercadoPagoAdapter(secret=MP_SECRET)
        headers = {"x-signature": self._signature("12345"), "x-request-id": "req-1"}
        payload = {"type": "payment", "data": {"id": "12345"}}

        self.assertTrue(
            adapter.verify_signature(headers=headers, raw_body=b"", payload=payload, query={})
        )
        headers["x-request-id"] = "req-2"
        self.assertFalse(
            adapter.verify_signature(headers=headers, raw_body=b"", payload=payload, query={})
        )

    def test_approved_payment_routes_to_order(self):
        client = FakeMercadoPagoClient(
            {
                "id": 555,
                "status": "approved",
                "transaction_amount": 123.45,
                "currency_id": "ARS",
                "payment_type_id": "credit_card",
                "external_reference": f"{self.workspace.pk}:{self.order.pk}",
                "fee_details": [{"amount": 5.10}],
            }
        )
        adapter = MercadoPagoAdapter(secret=MP_SECRET, client=client)
        event = adapter.normalize(
            workspace_id=self.workspace.pk,
            payload={"type": "payment", "data": {"id": "555"}},
        )

        self.assertIsInstance(event, PaymentApproved)
        self.assertEqual(event.amount, Decimal("123.45"))
        self.assertEqual(event.order_id, str(self.order.pk))
        self.assertEqual(event.method, Payment.METHOD_CARD)
        self.assertEqual(event.fee, Decimal("5.10"))
        self.assertEqual(client.calls, ["555"])

    def test_pending_and_other_types(self):
        adapter = MercadoPagoAdapter(
            secret=MP_SECRET, client=FakeMercadoPagoClient({"id": 7, "status": "in_process"})
        )
        pending = adapter.normalize(
            workspace_id=self.workspace.pk, payload={"type": "payment", "data": {"id": "7"}}
        )
        ignored = adapter.normalize(
            workspace_id=self.workspace.pk, payload={"type": "merchant_order", "data": {"id": "7"}}
        )
        self.assertIsInstance(pending, PaymentPending)
        self.assertIsInstance(ignored, PaymentIgnored)
