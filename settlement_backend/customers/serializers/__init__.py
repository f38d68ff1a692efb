from .customer import CustomerSerializer

__all__ = ["CustomerSerializer"]
