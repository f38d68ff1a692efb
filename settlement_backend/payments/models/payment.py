# payments/models/payment.py

import uuid
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q


class Payment(models.Model):
    """
    One row per settlement attempt.

    Idempotency rule:
    - (provider, external_id) is unique whenever external_id is set.
      A provider payment id can therefore only ever be COMPLETED once,
      no matter how many webhook notifications reference it.
    """

    PROVIDER_MERCADOPAGO = "mercadopago"
    PROVIDER_PAYSTACK = "paystack"
    PROVIDER_MANUAL = "manual"
    PROVIDER_RECEIPT = "receipt"
    PROVIDER_CREDIT = "credit"

    PROVIDER_CHOICES = [
        (PROVIDER_MERCADOPAGO, "MercadoPago"),
        (PROVIDER_PAYSTACK, "Paystack"),
        (PROVIDER_MANUAL, "Manual"),
        (PROVIDER_RECEIPT, "Receipt"),
        (PROVIDER_CREDIT, "Standing credit"),
    ]

    STATUS_PENDING = "pending"
    STATUS_COMPLETED = "completed"
    STATUS_FAILED = "failed"
    STATUS_REVERSED = "reversed"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_FAILED, "Failed"),
        (STATUS_REVERSED, "Reversed"),
    ]

    METHOD_CASH = "cash"
    METHOD_TRANSFER = "transfer"
    METHOD_CARD = "card"
    METHOD_OTHER = "other"

    METHOD_CHOICES = [
        (METHOD_CASH, "Cash"),
        (METHOD_TRANSFER, "Transfer"),
        (METHOD_CARD, "Card"),
        (METHOD_OTHER, "Other"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    workspace = models.ForeignKey(
        "workspaces.Workspace",
        on_delete=models.PROTECT,
        related_name="payments",
    )
    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="payments",
    )
    # Null for account-level settlements (see allocations for the per-order split).
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
    )

    provider = models.CharField(max_length=32, choices=PROVIDER_CHOICES)
    external_id = models.CharField(max_length=128, blank=True, default="")
    method = models.CharField(max_length=16, choices=METHOD_CHOICES, default=METHOD_OTHER)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING)

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    net_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )

    ledger_entry = models.ForeignKey(
        "ledger.LedgerEntry",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
    )

    provider_data = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    reversed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["customer", "created_at"], name="payment_customer_created_idx"),
            models.Index(fields=["order", "status"], name="payment_order_status_idx"),
            models.Index(fields=["status"], name="payment_status_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["provider", "external_id"],
                condition=~Q(external_id=""),
                name="uniq_payment_provider_external_id",
            ),
        ]

    def save(self, *args, **kwargs):
        if not self.net_amount:
            self.net_amount = (self.amount or Decimal("0.00")) - (self.fee or Decimal("0.00"))
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.provider}:{self.external_id or self.id} | {self.amount} | {self.status}"
