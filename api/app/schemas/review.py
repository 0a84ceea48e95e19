"""Pydantic schemas for submitting and rating reviews."""

from datetime import datetime
from typing import Union

from pydantic import BaseModel, ConfigDict, Field

from app.gateway.records import FilledAnswer


class ReviewCreate(BaseModel):
    """One answer per question of the product's schema, in schema order.

    A string for short-answer and single-choice questions, a list of
    strings for multiple-choice questions.
    """

    answers: list[Union[str, list[str]]] = Field(max_length=50)


class ReviewRating(BaseModel):
    rating: int = Field(ge=1, le=5)


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    reviewer_id: str
    product_id: str
    answers: list[FilledAnswer]
    quality_rating: int
    created_at: datetime
