from .product import ProductViewSet, ProductVariantViewSet
from .stock import StockItemViewSet, StockMovementViewSet, StockReservationViewSet

__all__ = [
    "ProductVariantViewSet",
    "ProductViewSet",
    "StockItemViewSet",
    "StockMovementViewSet",
    "StockReservationViewSet",
]
