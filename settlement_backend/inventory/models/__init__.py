# inventory/models/__init__.py

from .product import Product, ProductVariant
from .stock_item import StockItem
from .stock_movement import StockMovement
from .stock_reservation import StockReservation

__all__ = [
    "Product",
    "ProductVariant",
    "StockItem",
    "StockMovement",
    "StockReservation",
]
