from .entries import LedgerEntryViewSet
from .commands import AdjustmentView, PaymentView, WriteOffView

__all__ = ["AdjustmentView", "LedgerEntryViewSet", "PaymentView", "WriteOffView"]
