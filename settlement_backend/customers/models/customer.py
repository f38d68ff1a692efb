# customers/models/customer.py

"""
======================================================
PATH: customers/models/customer.py
======================================================
CUSTOMER MODEL

current_balance is a CACHE of the customer's ledger:

    current_balance == sum(debits) - sum(credits)

It is written only by ledger.services.ledger_service.append_entry, inside
the same transaction as the ledger row. Positive means the customer owes
money; negative means standing credit.

order_count / total_spent / payment_score are derived stats, recomputed by
customers.services.financials.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q


class Customer(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    workspace = models.ForeignKey(
        "workspaces.Workspace",
        on_delete=models.PROTECT,
        related_name="customers",
    )

    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True, default="")
    phone = models.CharField(max_length=50, blank=True, default="")
    tax_id = models.CharField(max_length=32, blank=True, default="")

    current_balance = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        editable=False,
        help_text="Service-managed cache of the signed ledger sum. Positive = owes.",
    )

    debt_reminder_count = models.PositiveIntegerField(default=0)

    payment_score = models.PositiveSmallIntegerField(
        default=100,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )

    order_count = models.PositiveIntegerField(default=0)
    total_spent = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    last_order_at = models.DateTimeField(null=True, blank=True)
    last_payment_at = models.DateTimeField(null=True, blank=True)

    deleted_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["workspace", "name"], name="customer_ws_name_idx"),
            models.Index(fields=["workspace", "current_balance"], name="customer_ws_balance_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["workspace", "email"],
                condition=~Q(email=""),
                name="uniq_customer_email_per_workspace",
            ),
        ]

    @property
    def has_debt(self) -> bool:
        return self.current_balance > 0

    @property
    def has_credit_balance(self) -> bool:
        return self.current_balance < 0

    def __str__(self):
        return f"{self.name} | balance {self.current_balance}"
