"""Review submission and quality-rating flow.

Design notes:
- submit_review() does not reject a second review by the same reviewer for
  the same product. The duplicate check is the caller's job, done with
  find_review() before submitting (the reviews router does this).
- rate_review() runs in one gateway transaction: the review row is read
  with for_update=True, so concurrent re-ratings of the same review queue
  up behind each other instead of rolling back a stale previous rating.
  The reviewer's karma moves by a single atomic increment of
  rerating_delta(previous, new), which nets to zero when re-rating with the
  same value.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional, Sequence, Union

import structlog

from app.errors import AuthenticationRequiredError, NotFoundError, ValidationError
from app.gateway.base import PRODUCTS, REVIEWS, USERS, Gateway
from app.gateway.records import (
    FilledAnswer,
    QuestionSpec,
    ReviewRecord,
    UserRecord,
    decode,
    encode,
)
from app.metrics import reviews_rated, reviews_submitted
from app.models.product import ProductStatus
from app.services.karma import rating_band, rerating_delta
from app.services.products import get_product

log = structlog.get_logger(__name__)

Answer = Union[str, list[str]]


def fill_answers(schema: Sequence[QuestionSpec], answers: Sequence[Answer]) -> list[FilledAnswer]:
    """Pair each schema question with its answer, rejecting incomplete input.

    Short-answer and single-choice questions need a non-empty string (a
    single-choice answer must be one of the choices); multiple-choice
    questions need a non-empty list drawn from the choices.
    """
    if len(answers) != len(schema):
        raise ValidationError(f"Expected {len(schema)} answers, got {len(answers)}")

    filled: list[FilledAnswer] = []
    for position, (question, answer) in enumerate(zip(schema, answers), 1):
        if question.type == "multiple-choice":
            if not isinstance(answer, list) or not answer or not all(
                isinstance(a, str) and a.strip() for a in answer
            ):
                raise ValidationError(f"Question {position} needs at least one selected choice")
            unknown = [a for a in answer if a not in (question.choices or [])]
            if unknown:
                raise ValidationError(f"Question {position} has unknown choices: {unknown}")
        else:
            if not isinstance(answer, str) or not answer.strip():
                raise ValidationError(f"Question {position} needs an answer")
            if question.type == "single-choice" and answer not in (question.choices or []):
                raise ValidationError(f"Question {position} answer is not one of the choices")
        filled.append(FilledAnswer(**question.model_dump(), answer=answer))
    return filled


async def submit_review(
    gateway: Gateway,
    reviewer_id: Optional[str],
    product_id: str,
    answers: Sequence[Answer],
) -> ReviewRecord:
    """Create an unrated review and link it to the product and the reviewer.

    Raises:
        AuthenticationRequiredError: no reviewer identity.
        NotFoundError: unknown product or reviewer.
        ValidationError: product is not published, or answers are incomplete.
    """
    if not reviewer_id:
        raise AuthenticationRequiredError("You must be signed in to submit a review")

    product = await get_product(gateway, product_id)
    if product.status != ProductStatus.published:
        raise ValidationError("Only published products accept reviews")

    review = ReviewRecord(
        id=str(uuid.uuid4()),
        reviewer_id=reviewer_id,
        product_id=product_id,
        answers=fill_answers(product.review_schema, answers),
        quality_rating=0,
        created_at=datetime.now(timezone.utc),
    )

    async with gateway.transaction():
        await gateway.create(REVIEWS, review.id, encode(review))
        await gateway.array_union(PRODUCTS, product_id, "review_ids", review.id)
        await gateway.array_union(USERS, reviewer_id, "review_ids", review.id)

    reviews_submitted.inc()
    log.info("review_submitted", review_id=review.id, product_id=product_id, reviewer_id=reviewer_id)
    return review


async def get_review(gateway: Gateway, review_id: str) -> ReviewRecord:
    raw = await gateway.get(REVIEWS, review_id)
    if raw is None:
        raise NotFoundError("Review not found")
    return decode(ReviewRecord, raw)


async def rate_review(gateway: Gateway, review_id: str, new_rating: int) -> ReviewRecord:
    """Set (or change) a review's quality rating and move the reviewer's karma.

    The caller must already have checked that it acts for the product owner.

    Raises:
        ValidationError: new_rating outside 1..5.
        NotFoundError: unknown review or reviewer; nothing is written.
    """
    if not 1 <= new_rating <= 5:
        raise ValidationError("Rating must be between 1 and 5")

    async with gateway.transaction():
        raw = await gateway.get(REVIEWS, review_id, for_update=True)
        if raw is None:
            raise NotFoundError("Review not found")
        review = decode(ReviewRecord, raw)
        previous_rating = review.quality_rating
        delta = rerating_delta(previous_rating, new_rating)

        await gateway.update(REVIEWS, review_id, {"quality_rating": new_rating})
        karma = await gateway.increment(USERS, review.reviewer_id, "karma_points", delta)

    reviews_rated.labels(band=rating_band(new_rating)).inc()
    log.info(
        "review_rated",
        review_id=review_id,
        reviewer_id=review.reviewer_id,
        previous_rating=previous_rating,
        new_rating=new_rating,
        karma_delta=delta,
        karma=karma,
    )
    return review.model_copy(update={"quality_rating": new_rating})


async def find_review(gateway: Gateway, reviewer_id: str, product_id: str) -> Optional[ReviewRecord]:
    """The reviewer's existing review of a product, if any (duplicate check)."""
    rows = await gateway.query(
        REVIEWS,
        {"reviewer_id": reviewer_id, "product_id": product_id},
        order_field="created_at",
        direction="asc",
    )
    return decode(ReviewRecord, rows[0]) if rows else None


async def list_product_reviews(gateway: Gateway, product_id: str) -> list[ReviewRecord]:
    rows = await gateway.query(
        REVIEWS, {"product_id": product_id}, order_field="created_at", direction="desc"
    )
    return [decode(ReviewRecord, row) for row in rows]


async def list_authored_reviews(gateway: Gateway, reviewer_id: str) -> list[ReviewRecord]:
    rows = await gateway.query(
        REVIEWS, {"reviewer_id": reviewer_id}, order_field="created_at", direction="desc"
    )
    return [decode(ReviewRecord, row) for row in rows]


async def list_user_reviews(gateway: Gateway, user: UserRecord) -> list[ReviewRecord]:
    """Reviews the user wrote plus reviews received on the user's products.

    Newest first, each review at most once.
    """
    seen: dict[str, ReviewRecord] = {}
    for review in await list_authored_reviews(gateway, user.id):
        seen[review.id] = review
    for product_id in user.product_ids:
        for review in await list_product_reviews(gateway, product_id):
            seen.setdefault(review.id, review)
    return sorted(seen.values(), key=lambda r: r.created_at, reverse=True)
