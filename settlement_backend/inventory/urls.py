# inventory/urls.py

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from inventory.views import (
    ProductVariantViewSet,
    ProductViewSet,
    StockItemViewSet,
    StockMovementViewSet,
    StockReservationViewSet,
)

router = DefaultRouter()
router.register(r"products", ProductViewSet, basename="products")
router.register(r"variants", ProductVariantViewSet, basename="variants")
router.register(r"stock-items", StockItemViewSet, basename="stock-items")
router.register(r"movements", StockMovementViewSet, basename="stock-movements")
router.register(r"reservations", StockReservationViewSet, basename="stock-reservations")

urlpatterns = [
    path("", include(router.urls)),
]
