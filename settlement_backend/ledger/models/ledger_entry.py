# ledger/models/ledger_entry.py

"""
======================================================
PATH: ledger/models/ledger_entry.py
======================================================
CUSTOMER LEDGER ENTRY

One debit or credit against a single customer's balance.

Guarantees:
- Immutable once created (no updates, no deletes)
- Amount is always positive; direction is via entry_type
- balance_after is the customer's balance right after this entry
- Corrections are new entries (Adjustment / ReceiptReversal / ...)
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models


class LedgerEntry(models.Model):
    DEBIT = "debit"
    CREDIT = "credit"

    ENTRY_TYPES = [
        (DEBIT, "Debit"),
        (CREDIT, "Credit"),
    ]

    REF_ORDER = "Order"
    REF_PAYMENT = "Payment"
    REF_RECEIPT = "Receipt"
    REF_RECEIPT_REVERSAL = "ReceiptReversal"
    REF_ADJUSTMENT = "Adjustment"
    REF_WRITE_OFF = "WriteOff"
    REF_REFUND = "Refund"
    REF_ORDER_CANCELLATION = "OrderCancellation"

    REFERENCE_TYPES = [
        (REF_ORDER, "Order"),
        (REF_PAYMENT, "Payment"),
        (REF_RECEIPT, "Receipt"),
        (REF_RECEIPT_REVERSAL, "Receipt reversal"),
        (REF_ADJUSTMENT, "Adjustment"),
        (REF_WRITE_OFF, "Write-off"),
        (REF_REFUND, "Refund"),
        (REF_ORDER_CANCELLATION, "Order cancellation"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    workspace = models.ForeignKey(
        "workspaces.Workspace",
        on_delete=models.PROTECT,
        related_name="ledger_entries",
    )

    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="ledger_entries",
    )

    entry_type = models.CharField(max_length=6, choices=ENTRY_TYPES)

    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
        help_text="Positive monetary value",
    )

    balance_after = models.DecimalField(max_digits=14, decimal_places=2)
    currency = models.CharField(max_length=3, default="ARS")

    reference_type = models.CharField(max_length=32, choices=REFERENCE_TYPES)
    reference_id = models.CharField(max_length=64, blank=True, default="")

    description = models.CharField(max_length=255, blank=True, default="")
    metadata = models.JSONField(default=dict, blank=True)

    created_by = models.CharField(max_length=150, blank=True, default="system")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Ledger Entry"
        verbose_name_plural = "Ledger Entries"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["customer", "created_at"], name="ledger_customer_created_idx"),
            models.Index(fields=["customer", "entry_type"], name="ledger_customer_type_idx"),
            models.Index(fields=["reference_type", "reference_id"], name="ledger_reference_idx"),
            models.Index(fields=["workspace", "created_at"], name="ledger_ws_created_idx"),
        ]

    def __str__(self):
        return f"{self.entry_type} {self.amount} → {self.customer_id} ({self.reference_type})"

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.entry_type == self.DEBIT else -self.amount

    def clean(self):
        if self.entry_type not in (self.DEBIT, self.CREDIT):
            raise ValidationError("Invalid entry_type")

        if self.amount is None or self.amount <= 0:
            raise ValidationError("Ledger amount must be > 0")

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("LedgerEntry records are immutable and cannot be modified")

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("LedgerEntry records are immutable and cannot be deleted")
