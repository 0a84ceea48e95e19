"""Typed records stored behind the persistence gateway.

Gateway implementations move plain dicts; services decode them through these
models so that a record missing a required field fails loudly with
RecordDecodeError instead of being papered over with defaults.
"""

from datetime import datetime
from typing import Literal, Optional, Type, TypeVar, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from app.errors import RecordDecodeError

QuestionType = Literal["short-answer", "single-choice", "multiple-choice"]
ProductStatusLiteral = Literal["draft", "published"]

CHOICE_TYPES: frozenset[str] = frozenset({"single-choice", "multiple-choice"})


class QuestionSpec(BaseModel):
    question: str
    type: QuestionType
    choices: Optional[list[str]] = None


class FilledAnswer(QuestionSpec):
    answer: Union[str, list[str]]


class ProductImage(BaseModel):
    url: str
    is_primary: bool = False


class UserRecord(BaseModel):
    id: str
    email: Optional[str] = None
    api_key_hash: Optional[str] = None
    display_name: str
    karma_points: int
    product_ids: list[str]
    review_ids: list[str]
    created_at: datetime


class ProductRecord(BaseModel):
    id: str
    owner_id: str
    name: str
    description: str
    link: str
    images: list[ProductImage]
    # Legacy flat image field; older records may carry only this
    image_url: str = ""
    review_schema: list[QuestionSpec]
    review_ids: list[str]
    status: ProductStatusLiteral
    feedback_objective: Optional[str] = None
    created_at: datetime


class ReviewRecord(BaseModel):
    id: str
    reviewer_id: str
    product_id: str
    answers: list[FilledAnswer]
    quality_rating: int = Field(ge=0, le=5)
    created_at: datetime


RecordT = TypeVar("RecordT", bound=BaseModel)


def decode(model: Type[RecordT], raw: dict) -> RecordT:
    """Decode a raw gateway record, raising RecordDecodeError on schema mismatch."""
    try:
        return model.model_validate(raw)
    except PydanticValidationError as exc:
        record_id = raw.get("id", "?") if isinstance(raw, dict) else "?"
        raise RecordDecodeError(
            f"{model.__name__} {record_id} is malformed: {exc.error_count()} error(s)"
        ) from exc


def encode(record: BaseModel) -> dict:
    """Dump a record for the gateway, keeping datetimes as datetime objects."""
    return record.model_dump()
