# receipts/services/receipt_service.py

"""
======================================================
PATH: receipts/services/receipt_service.py
======================================================
RECEIPT SERVICE

Lifecycle:
    upload  -> pending_review (optionally auto-applied right away)
    apply   -> applied   (settles through the settlement engine)
    reject  -> rejected
    delete  -> row removed; if it was applied, the payment is reversed

Hard rules:
- applied and rejected are terminal; leaving them raises StateError.
- The same file (sha256) cannot be uploaded twice for one customer.
- A vision failure never blocks the upload; the receipt just waits for
  manual review without an extracted amount.
"""

from __future__ import annotations

import hashlib
import logging
import mimetypes
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import IntegrityError, transaction
from django.utils import timezone

from common.exceptions import (
    ConflictError,
    DependencyError,
    NotFoundError,
    StateError,
    ValidationError,
)
from common.money import cents_to_money, positive_money
from customers.models import Customer
from ledger.models import LedgerEntry
from ledger.services.ledger_service import actor_label
from ledger.services.settlement import reverse_payment
from notifications.models import Notification
from notifications.services.dispatch import notify_after_commit
from orders.models import Order
from payments.models import Payment
from receipts.models import Receipt
from receipts.services.intake import from_vision, settle_evidence

logger = logging.getLogger(__name__)

ALLOWED_FILE_TYPES = {
    "image/jpeg",
    "image/png",
    "image/webp",
    "application/pdf",
}


class DuplicateReceiptError(ConflictError):
    code = "DUPLICATE_RECEIPT"


def file_sha256(content: bytes) -> str:
    return hashlib.sha256(content or b"").hexdigest()


def _auto_apply_threshold() -> Decimal:
    return Decimal(str(getattr(settings, "RECEIPT_AUTO_APPLY_MIN_CONFIDENCE", 0.85)))


def _lock_receipt(receipt_id) -> Receipt:
    try:
        return Receipt.objects.select_for_update().get(pk=receipt_id)
    except (Receipt.DoesNotExist, DjangoValidationError, ValueError, TypeError) as exc:
        raise NotFoundError(f"Receipt {receipt_id} not found", code="RECEIPT_NOT_FOUND") from exc


def _require_pending(receipt: Receipt, action: str) -> None:
    if receipt.status != Receipt.STATUS_PENDING_REVIEW:
        raise StateError(
            f"Cannot {action} a receipt in status '{receipt.status}'",
            code="RECEIPT_NOT_PENDING",
        )


def _receipt_payment(receipt: Receipt) -> Payment | None:
    return Payment.objects.filter(
        provider=Payment.PROVIDER_RECEIPT, external_id=str(receipt.pk)
    ).first()


# ======================================================
# UPLOAD
# ======================================================


def upload_receipt(
    *,
    customer_id,
    content: bytes,
    file_name: str = "",
    file_type: str = "",
    declared_amount=None,
    order_id=None,
    payment_method: str = Payment.METHOD_TRANSFER,
    auto_detect: bool = True,
    vision_client=None,
    actor=None,
) -> Receipt:
    customer = Customer.objects.filter(pk=customer_id, deleted_at__isnull=True).first()
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found", code="CUSTOMER_NOT_FOUND")

    if not content:
        raise ValidationError("Receipt file is empty", code="EMPTY_FILE")

    max_bytes = int(getattr(settings, "RECEIPT_MAX_UPLOAD_BYTES", 10 * 1024 * 1024))
    if len(content) > max_bytes:
        raise ValidationError(
            f"Receipt file exceeds {max_bytes} bytes", code="FILE_TOO_LARGE"
        )

    file_type = (file_type or mimetypes.guess_type(file_name or "")[0] or "").lower()
    if file_type not in ALLOWED_FILE_TYPES:
        raise ValidationError(f"Unsupported receipt type '{file_type}'", code="UNSUPPORTED_FILE")

    if declared_amount not in (None, ""):
        declared_amount = positive_money(declared_amount, field="declared_amount")

    order = None
    if order_id:
        order = Order.objects.filter(pk=order_id, customer=customer).first()
        if order is None:
            raise NotFoundError(f"Order {order_id} not found for customer", code="ORDER_NOT_FOUND")

    file_hash = file_sha256(content)
    if Receipt.objects.filter(customer=customer, file_hash=file_hash).exists():
        raise DuplicateReceiptError("This receipt was already uploaded for this customer")

    extraction = None
    if auto_detect and vision_client is not None:
        try:
            extraction = vision_client.extract(content, file_type)
        except DependencyError:
            logger.exception(
                "Vision extraction failed; receipt kept for manual review",
                extra={"customer_id": str(customer.pk), "file_hash": file_hash},
            )

    evidence = from_vision(
        extraction=extraction,
        declared_amount=declared_amount,
        source_id="",
        order_id=order.pk if order else None,
        customer_id=customer.pk,
        method=payment_method,
    )

    stored_name = default_storage.save(
        f"receipts/{customer.workspace_id}/{file_hash}", ContentFile(content)
    )

    try:
        with transaction.atomic():
            receipt = Receipt.objects.create(
                workspace_id=customer.workspace_id,
                customer=customer,
                order=order,
                file_ref=stored_name,
                file_name=(file_name or "")[:255],
                file_type=file_type,
                file_size_bytes=len(content),
                file_hash=file_hash,
                extracted_amount=(
                    cents_to_money(extraction.amount_cents)
                    if extraction is not None and extraction.amount_cents is not None
                    else None
                ),
                extracted_confidence=extraction.confidence if extraction is not None else None,
                extracted_raw_text=extraction.extracted_text if extraction is not None else "",
                declared_amount=declared_amount,
                payment_method=payment_method or Payment.METHOD_TRANSFER,
                uploaded_by=actor_label(actor),
            )
    except IntegrityError as exc:
        raise DuplicateReceiptError(
            "This receipt was already uploaded for this customer"
        ) from exc

    logger.info(
        "Receipt uploaded",
        extra={
            "receipt_id": str(receipt.pk),
            "customer_id": str(customer.pk),
            "declared": str(declared_amount or ""),
            "extracted": str(receipt.extracted_amount or ""),
        },
    )

    should_auto_apply = (
        order is not None
        and receipt.resolved_amount is not None
        and evidence.confidence is not None
        and evidence.confidence >= _auto_apply_threshold()
    )

    if should_auto_apply:
        try:
            return apply_receipt(receipt_id=receipt.pk, actor=actor)
        except (ConflictError, StateError, ValidationError) as exc:
            logger.warning(
                "Receipt auto-apply failed; left for manual review",
                extra={"receipt_id": str(receipt.pk), "error_code": exc.code, "error": str(exc)},
            )
            receipt.refresh_from_db()

    notify_after_commit(
        workspace_id=customer.workspace_id,
        kind=Notification.KIND_RECEIPT_UPLOADED,
        title=f"Receipt from {customer.name} awaiting review",
        entity_type="Receipt",
        entity_id=receipt.pk,
    )
    return receipt


# ======================================================
# APPLY / REJECT
# ======================================================


@transaction.atomic
def apply_receipt(*, receipt_id, order_id=None, amount=None, actor=None) -> Receipt:
    receipt = _lock_receipt(receipt_id)
    _require_pending(receipt, "apply")

    if amount not in (None, ""):
        resolved = positive_money(amount)
    elif receipt.resolved_amount is not None:
        resolved = positive_money(receipt.resolved_amount)
    else:
        raise ValidationError(
            "Receipt has no amount; provide one to apply it", code="AMOUNT_REQUIRED"
        )

    target_order_id = order_id or receipt.order_id

    evidence = from_vision(
        extraction=None,
        declared_amount=resolved,
        source_id=str(receipt.pk),
        order_id=target_order_id,
        customer_id=receipt.customer_id,
        method=receipt.payment_method,
    )

    result = settle_evidence(
        evidence,
        workspace_id=receipt.workspace_id,
        actor=actor,
        reference_type=LedgerEntry.REF_RECEIPT,
        reference_id=str(receipt.pk),
        description=f"Receipt {receipt.pk}",
    )

    receipt.status = Receipt.STATUS_APPLIED
    receipt.applied_amount = resolved
    receipt.ledger_entry_id = result.ledger_entry_id
    receipt.applied_by = actor_label(actor)
    receipt.applied_at = timezone.now()
    fields = ["status", "applied_amount", "ledger_entry", "applied_by", "applied_at", "updated_at"]
    if target_order_id and receipt.order_id != target_order_id:
        receipt.order_id = target_order_id
        fields.append("order")
    receipt.save(update_fields=fields)

    logger.info(
        "Receipt applied",
        extra={
            "receipt_id": str(receipt.pk),
            "amount": str(resolved),
            "orders": len(result.orders_settled),
            "unallocated": str(result.unallocated_amount),
        },
    )
    return receipt


@transaction.atomic
def reject_receipt(*, receipt_id, reason: str = "", actor=None) -> Receipt:
    receipt = _lock_receipt(receipt_id)
    _require_pending(receipt, "reject")

    receipt.status = Receipt.STATUS_REJECTED
    receipt.rejection_reason = (reason or "Rejected").strip()[:255]
    receipt.applied_by = actor_label(actor)
    receipt.save(update_fields=["status", "rejection_reason", "applied_by", "updated_at"])
    return receipt


# ======================================================
# DELETE (with reversal)
# ======================================================


@transaction.atomic
def delete_receipt(*, receipt_id, actor=None) -> dict:
    receipt = _lock_receipt(receipt_id)

    reversal = None
    if receipt.status == Receipt.STATUS_APPLIED:
        payment = _receipt_payment(receipt)
        if payment is None:
            raise StateError(
                f"Applied receipt {receipt.pk} has no payment to reverse",
                code="RECEIPT_PAYMENT_MISSING",
            )
        reversal = reverse_payment(
            payment_id=payment.pk,
            reference_type=LedgerEntry.REF_RECEIPT_REVERSAL,
            reference_id=str(receipt.pk),
            actor=actor,
            reason=f"Receipt {receipt.pk} deleted",
        )

    file_ref = receipt.file_ref
    receipt_pk = receipt.pk
    receipt.delete()

    if file_ref:
        transaction.on_commit(lambda: default_storage.delete(file_ref))

    logger.info(
        "Receipt deleted",
        extra={
            "receipt_id": str(receipt_pk),
            "reversed": reversal is not None,
            "actor": actor_label(actor),
        },
    )
    return {
        "receipt_id": str(receipt_pk),
        "reversed": reversal is not None,
        "reversal_entry_id": str(reversal.ledger_entry_id) if reversal else None,
        "reversed_amount": reversal.reversed_amount if reversal else None,
        "orders_reverted": reversal.orders_reverted if reversal else [],
    }
