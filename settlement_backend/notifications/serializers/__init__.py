from .notification import NotificationSerializer

__all__ = ["NotificationSerializer"]
