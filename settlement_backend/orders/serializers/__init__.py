from .order import (
    InvoiceRecordSerializer,
    OrderItemSerializer,
    OrderSerializer,
    OrderStatusHistorySerializer,
    OrderSummarySerializer,
)
from .commands import (
    OrderCancelSerializer,
    OrderCreateSerializer,
    OrderPaymentCommandSerializer,
    OrderStatusCommandSerializer,
)

__all__ = [
    "InvoiceRecordSerializer",
    "OrderCancelSerializer",
    "OrderCreateSerializer",
    "OrderItemSerializer",
    "OrderPaymentCommandSerializer",
    "OrderSerializer",
    "OrderStatusCommandSerializer",
    "OrderStatusHistorySerializer",
    "OrderSummarySerializer",
]
