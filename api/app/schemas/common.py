"""Common shared schema types used across the API."""

from typing import Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response envelope.

    `error` is the machine-readable kind (e.g. "already_published"),
    `detail` the human-readable message.
    """

    error: str
    detail: Optional[str] = None
