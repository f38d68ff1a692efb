# receipts/models/receipt.py

"""
RECEIPT (payment evidence uploaded by staff or the customer)

Lifecycle:
    pending_review -> applied
    pending_review -> rejected

Both end states are terminal (see receipts.services.receipt_service).

Dedup rule:
- (customer, file_hash) is unique. Byte-identical evidence for the same
  customer is a conflict, not a silent no-op.
"""

import uuid

from django.db import models


class Receipt(models.Model):
    STATUS_PENDING_REVIEW = "pending_review"
    STATUS_APPLIED = "applied"
    STATUS_REJECTED = "rejected"

    STATUS_CHOICES = [
        (STATUS_PENDING_REVIEW, "Pending review"),
        (STATUS_APPLIED, "Applied"),
        (STATUS_REJECTED, "Rejected"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    workspace = models.ForeignKey(
        "workspaces.Workspace",
        on_delete=models.PROTECT,
        related_name="receipts",
    )
    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="receipts",
    )
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="receipts",
    )

    file_ref = models.CharField(max_length=512, blank=True, default="")
    file_name = models.CharField(max_length=255, blank=True, default="")
    file_type = models.CharField(max_length=64, blank=True, default="")
    file_size_bytes = models.PositiveIntegerField(default=0)
    file_hash = models.CharField(max_length=64)

    extracted_amount = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True
    )
    extracted_confidence = models.DecimalField(
        max_digits=4, decimal_places=3, null=True, blank=True
    )
    extracted_raw_text = models.TextField(blank=True, default="")

    declared_amount = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True
    )
    applied_amount = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True
    )

    ledger_entry = models.ForeignKey(
        "ledger.LedgerEntry",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="receipts",
    )

    payment_method = models.CharField(max_length=32, blank=True, default="transfer")
    status = models.CharField(
        max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING_REVIEW
    )
    rejection_reason = models.CharField(max_length=255, blank=True, default="")

    uploaded_by = models.CharField(max_length=150, blank=True, default="system")
    applied_by = models.CharField(max_length=150, blank=True, default="")
    applied_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["customer", "status"], name="receipt_customer_status_idx"),
            models.Index(fields=["order"], name="receipt_order_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["customer", "file_hash"],
                name="uniq_receipt_hash_per_customer",
            ),
        ]

    @property
    def resolved_amount(self):
        """Declared amount always wins over the vision-extracted one."""
        if self.declared_amount is not None:
            return self.declared_amount
        return self.extracted_amount

    def __str__(self):
        return f"Receipt {self.id} | {self.customer_id} | {self.status}"
