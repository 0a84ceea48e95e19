"""Persistence gateway package.

Re-exports the contract, record types and both implementations:

    from app.gateway import Gateway, MemoryGateway, PRODUCTS, ProductRecord, ...
"""

from app.gateway.base import COLLECTIONS, PRODUCTS, REVIEWS, USERS, Gateway
from app.gateway.feed import ChangeFeed
from app.gateway.memory import MemoryGateway
from app.gateway.records import (
    FilledAnswer,
    ProductImage,
    ProductRecord,
    QuestionSpec,
    ReviewRecord,
    UserRecord,
    decode,
    encode,
)

__all__ = [
    # Contract
    "Gateway",
    "ChangeFeed",
    "COLLECTIONS",
    "USERS",
    "PRODUCTS",
    "REVIEWS",
    # Implementations
    "MemoryGateway",
    # Records
    "UserRecord",
    "ProductRecord",
    "ReviewRecord",
    "QuestionSpec",
    "FilledAnswer",
    "ProductImage",
    "decode",
    "encode",
]
