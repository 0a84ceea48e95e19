from .base import Base
from .product import Product, ProductStatus
from .review import Review
from .user import User

__all__ = [
    "Base",
    "Product",
    "ProductStatus",
    "Review",
    "User",
]
