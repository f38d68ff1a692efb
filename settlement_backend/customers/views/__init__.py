from .customer import CustomerViewSet

__all__ = ["CustomerViewSet"]
