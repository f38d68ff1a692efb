from .ledger_entry import LedgerEntrySerializer
from .commands import (
    AdjustmentCommandSerializer,
    PaymentCommandSerializer,
    WriteOffCommandSerializer,
)

__all__ = [
    "AdjustmentCommandSerializer",
    "LedgerEntrySerializer",
    "PaymentCommandSerializer",
    "WriteOffCommandSerializer",
]
