from .product import ProductSerializer, ProductVariantSerializer
from .stock import (
    StockAdjustmentCommandSerializer,
    StockItemSerializer,
    StockMovementSerializer,
    StockReservationSerializer,
)

__all__ = [
    "ProductSerializer",
    "ProductVariantSerializer",
    "StockAdjustmentCommandSerializer",
    "StockItemSerializer",
    "StockMovementSerializer",
    "StockReservationSerializer",
]
