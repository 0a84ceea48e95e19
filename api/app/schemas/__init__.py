"""Karmaboard Pydantic schemas package.

Re-exports all request and response schemas for convenient importing:

    from app.schemas import ProductCreate, ProductResponse, ReviewCreate, ...
"""

from app.schemas.auth import APIKeyCreate, APIKeyResponse
from app.schemas.common import ErrorResponse
from app.schemas.product import ImageUploadResponse, ProductCreate, ProductResponse, ProductUpdate
from app.schemas.question import QuestionGenerationRequest, QuestionGenerationResponse
from app.schemas.review import ReviewCreate, ReviewRating, ReviewResponse
from app.schemas.user import (
    KarmaTimelinePoint,
    KarmaTimelineResponse,
    LeaderboardResponse,
    PublicUserResponse,
    UserResponse,
)

__all__ = [
    # Product
    "ProductCreate",
    "ProductUpdate",
    "ProductResponse",
    "ImageUploadResponse",
    # Review
    "ReviewCreate",
    "ReviewRating",
    "ReviewResponse",
    # Question drafting
    "QuestionGenerationRequest",
    "QuestionGenerationResponse",
    # User
    "UserResponse",
    "PublicUserResponse",
    "LeaderboardResponse",
    "KarmaTimelinePoint",
    "KarmaTimelineResponse",
    # Auth
    "APIKeyCreate",
    "APIKeyResponse",
    # Common
    "ErrorResponse",
]
