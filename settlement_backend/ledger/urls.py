# ledger/urls.py

"""
LEDGER URLS (mounted at /api/ledger/)

Explicit command routes go BEFORE the router, otherwise the router
treats "payments" as an entry pk.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from ledger.views import AdjustmentView, LedgerEntryViewSet, PaymentView, WriteOffView

router = DefaultRouter()
router.register(r"entries", LedgerEntryViewSet, basename="ledger-entries")

urlpatterns = [
    path("payments/", PaymentView.as_view(), name="ledger-payments"),
    path("adjustments/", AdjustmentView.as_view(), name="ledger-adjustments"),
    path("write-offs/", WriteOffView.as_view(), name="ledger-write-offs"),
    path("", include(router.urls)),
]
