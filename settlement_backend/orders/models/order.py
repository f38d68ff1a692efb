# orders/models/order.py

import uuid
from decimal import Decimal

from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class Order(models.Model):
    """
    Customer order.

    Key rules:
    - status only changes through orders.services.order_lifecycle
    - paid_amount only changes through the settlement engine
      (ledger.services.settlement) and receipt reversal
    - 0 <= paid_amount <= total (DB constraint + service guard)
    - soft-deleted via deleted_at; rows are never removed
    """

    STATUS_DRAFT = "draft"
    STATUS_AWAITING_ACCEPTANCE = "awaiting_acceptance"
    STATUS_ACCEPTED = "accepted"
    STATUS_PROCESSING = "processing"
    STATUS_SHIPPED = "shipped"
    STATUS_DELIVERED = "delivered"
    STATUS_PAID = "paid"
    STATUS_PENDING_INVOICING = "pending_invoicing"
    STATUS_INVOICED = "invoiced"
    STATUS_INVOICE_CANCELLED = "invoice_cancelled"
    STATUS_CANCELLED = "cancelled"
    STATUS_RETURNED = "returned"
    STATUS_TRASHED = "trashed"

    STATUS_CHOICES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_AWAITING_ACCEPTANCE, "Awaiting acceptance"),
        (STATUS_ACCEPTED, "Accepted"),
        (STATUS_PROCESSING, "Processing"),
        (STATUS_SHIPPED, "Shipped"),
        (STATUS_DELIVERED, "Delivered"),
        (STATUS_PAID, "Paid"),
        (STATUS_PENDING_INVOICING, "Pending invoicing"),
        (STATUS_INVOICED, "Invoiced"),
        (STATUS_INVOICE_CANCELLED, "Invoice cancelled"),
        (STATUS_CANCELLED, "Cancelled"),
        (STATUS_RETURNED, "Returned"),
        (STATUS_TRASHED, "Trashed"),
    ]

    # Orders in these states carry no debt and never receive allocations.
    NON_DEBT_STATUSES = frozenset(
        {STATUS_DRAFT, STATUS_CANCELLED, STATUS_RETURNED, STATUS_TRASHED}
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    workspace = models.ForeignKey(
        "workspaces.Workspace",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="orders",
    )

    order_number = models.CharField(max_length=32)

    status = models.CharField(max_length=32, choices=STATUS_CHOICES, default=STATUS_DRAFT)

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    shipping = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    paid_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        editable=False,
        help_text="Service-managed. Always between 0 and total.",
    )

    # True once the order's debit has been appended to the customer ledger.
    debit_posted = models.BooleanField(default=False, editable=False)

    notes = models.TextField(blank=True, default="")
    metadata = models.JSONField(default=dict, blank=True)

    created_by = models.CharField(max_length=150, blank=True, default="system")

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancel_reason = models.CharField(max_length=255, blank=True, default="")
    deleted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["workspace", "status"], name="order_ws_status_idx"),
            models.Index(fields=["customer", "created_at"], name="order_customer_created_idx"),
            models.Index(fields=["customer", "status"], name="order_customer_status_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["workspace", "order_number"],
                name="uniq_order_number_per_workspace",
            ),
            models.CheckConstraint(
                condition=Q(total__gte=0),
                name="order_total_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(paid_amount__gte=0) & Q(paid_amount__lte=F("total")),
                name="order_paid_amount_within_total",
            ),
        ]

    @property
    def pending_amount(self) -> Decimal:
        pending = (self.total or Decimal("0.00")) - (self.paid_amount or Decimal("0.00"))
        return pending if pending > 0 else Decimal("0.00")

    @property
    def is_fully_paid(self) -> bool:
        return self.total > 0 and self.paid_amount >= self.total

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __str__(self):
        return f"{self.order_number} | {self.total} | {self.status}"
