# inventory/models/stock_reservation.py

from django.db import models


class StockReservation(models.Model):
    """
    Time-bounded hold of stock for an order.

    active -> released   (order cancelled / returned)
    active -> expired    (expires_at passed, swept by expire_stock_reservations)
    active -> consumed   (order shipped / delivered; stock leaves the building)
    """

    STATUS_ACTIVE = "active"
    STATUS_RELEASED = "released"
    STATUS_CONSUMED = "consumed"
    STATUS_EXPIRED = "expired"

    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_RELEASED, "Released"),
        (STATUS_CONSUMED, "Consumed"),
        (STATUS_EXPIRED, "Expired"),
    ]

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="stock_reservations",
    )
    stock_item = models.ForeignKey(
        "inventory.StockItem",
        on_delete=models.PROTECT,
        related_name="reservations",
    )
    product = models.ForeignKey(
        "inventory.Product",
        on_delete=models.PROTECT,
        related_name="reservations",
    )
    variant = models.ForeignKey(
        "inventory.ProductVariant",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="reservations",
    )

    quantity = models.PositiveIntegerField()
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE)

    expires_at = models.DateTimeField()
    committed_at = models.DateTimeField(null=True, blank=True)
    released_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["status", "expires_at"], name="stockres_status_expires_idx"),
            models.Index(fields=["order", "status"], name="stockres_order_status_idx"),
        ]

    def __str__(self):
        return f"{self.order_id} | {self.stock_item_id} x{self.quantity} | {self.status}"
