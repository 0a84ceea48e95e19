"""Pydantic schemas for AI survey question drafting."""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from app.gateway.records import QuestionSpec


class QuestionGenerationRequest(BaseModel):
    product_name: str = Field(max_length=200)
    description: str = Field(max_length=5000)
    feedback_objective: Optional[str] = Field(None, max_length=2000)


class QuestionGenerationResponse(BaseModel):
    questions: list[QuestionSpec]
    source: Literal["ai", "fallback"]
