# orders/models/__init__.py

"""
ORDERS MODELS PACKAGE EXPORTS
"""

from .invoice_record import InvoiceRecord
from .order import Order
from .order_item import OrderItem
from .order_status_history import OrderStatusHistory

__all__ = [
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "InvoiceRecord",
]
