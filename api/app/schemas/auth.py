"""Pydantic schemas for sign-up (API key issue) and authentication."""

from typing import Optional

from pydantic import BaseModel, Field


class APIKeyCreate(BaseModel):
    """Request schema for first sign-in: registers the user and issues a key."""

    email: Optional[str] = Field(None, max_length=255)
    display_name: str = Field("", max_length=100)


class APIKeyResponse(BaseModel):
    """Response schema after a new API key is generated.

    The api_key is shown exactly once. It is stored only as a hash and
    cannot be retrieved again after this response.
    """

    api_key: str
    user_id: str
    karma_points: int
    message: str = "Store this key securely -- it cannot be retrieved again"
