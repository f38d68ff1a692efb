from .receipt import (
    ReceiptApplySerializer,
    ReceiptRejectSerializer,
    ReceiptSerializer,
    ReceiptUploadSerializer,
)

__all__ = [
    "ReceiptApplySerializer",
    "ReceiptRejectSerializer",
    "ReceiptSerializer",
    "ReceiptUploadSerializer",
]
