# orders/models/invoice_record.py

from django.db import models


class InvoiceRecord(models.Model):
    """
    Outcome of one tax-authority authorization request for an order.

    Approved records carry the authority's invoice number + authorization code.
    Rejected ones keep the raw response for support.
    """

    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"

    STATUS_CHOICES = [
        (STATUS_APPROVED, "Approved"),
        (STATUS_REJECTED, "Rejected"),
    ]

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="invoice_records",
    )

    status = models.CharField(max_length=16, choices=STATUS_CHOICES)
    invoice_number = models.CharField(max_length=64, blank=True, default="")
    authorization_code = models.CharField(max_length=64, blank=True, default="")
    authorization_expires_at = models.DateTimeField(null=True, blank=True)
    raw_response = models.JSONField(default=dict, blank=True)

    requested_by = models.CharField(max_length=150, blank=True, default="system")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.order_id} | {self.status} | {self.invoice_number or '-'}"
