"""Product lifecycle rules: draft -> published, field validity, image selection.

State machine:
- A product is created in 'draft'.
- 'draft' -> 'draft' (update) is allowed while the product is a draft; drafts
  may be incomplete.
- 'draft' -> 'published' (publish) requires the full field and question
  schema validity checked by validate_for_publish().
- There is no transition out of 'published'.
"""

from typing import Iterable, Optional

from app.errors import AlreadyPublishedError, EditNotAllowedError, ValidationError
from app.gateway.records import CHOICE_TYPES, ProductImage, ProductRecord, QuestionSpec
from app.models.product import ProductStatus

MIN_CHOICES = 2


def clean_question(question: QuestionSpec) -> QuestionSpec:
    """Drop empty choices from choice questions; short answers carry no choices."""
    if question.type not in CHOICE_TYPES:
        return question.model_copy(update={"choices": None})
    choices = [choice for choice in (question.choices or []) if choice.strip()]
    return question.model_copy(update={"choices": choices})


def clean_review_schema(schema: Iterable[QuestionSpec]) -> list[QuestionSpec]:
    return [clean_question(question) for question in schema]


def resolve_images(images: Iterable[ProductImage]) -> list[ProductImage]:
    """Return the image list with exactly one primary entry.

    The first entry the caller marked primary keeps the flag and any later
    ones lose it; with none marked, the first image becomes primary.
    """
    images = list(images)
    if not images:
        return []
    primary_index = next((i for i, image in enumerate(images) if image.is_primary), 0)
    return [
        ProductImage(url=image.url, is_primary=(i == primary_index))
        for i, image in enumerate(images)
    ]


def display_image(images: Iterable[ProductImage], legacy_url: str = "") -> Optional[str]:
    """Effective display image: primary, else first, else legacy URL, else None."""
    images = list(images)
    for image in images:
        if image.is_primary:
            return image.url
    if images:
        return images[0].url
    return legacy_url or None


def schema_problems(schema: Iterable[QuestionSpec]) -> list[str]:
    problems: list[str] = []
    schema = list(schema)
    if not schema:
        problems.append("at least one question is required")
    for position, question in enumerate(schema, 1):
        if not question.question.strip():
            problems.append(f"question {position} has no text")
        if question.type in CHOICE_TYPES:
            choices = [c for c in (question.choices or []) if c.strip()]
            if len(choices) < MIN_CHOICES:
                problems.append(f"question {position} needs at least {MIN_CHOICES} choices")
    return problems


def validate_for_publish(product: ProductRecord) -> None:
    """Raise ValidationError listing every reason the product cannot be published."""
    problems = [
        f"{field} is required"
        for field in ("name", "description", "link")
        if not getattr(product, field).strip()
    ]
    problems.extend(schema_problems(product.review_schema))
    if problems:
        raise ValidationError("Cannot publish: " + "; ".join(problems))


def ensure_editable(product: ProductRecord) -> None:
    if product.status == ProductStatus.published:
        raise EditNotAllowedError("Cannot edit published products")


def ensure_publishable(product: ProductRecord) -> None:
    if product.status == ProductStatus.published:
        raise AlreadyPublishedError("Product is already published")
    validate_for_publish(product)


def normalize_objective(objective: Optional[str]) -> Optional[str]:
    if objective is None:
        return None
    return objective.strip() or None
