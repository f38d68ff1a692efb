from .receipt import ReceiptViewSet

__all__ = ["ReceiptViewSet"]
