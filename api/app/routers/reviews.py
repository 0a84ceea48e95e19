"""Review submission and quality rating endpoints.

POST /api/v1/products/{product_id}/reviews      -- answer a product's questions
GET  /api/v1/products/{product_id}/reviews      -- reviews received (owner only)
GET  /api/v1/products/{product_id}/reviews/mine -- caller's review of a product
PUT  /api/v1/reviews/{review_id}/rating         -- owner rates a review 1..5
GET  /api/v1/reviews/mine                       -- reviews written and received
"""

from fastapi import APIRouter

from app.dependencies import CurrentUser, GatewayDep
from app.errors import DuplicateReviewError, ForbiddenError, NotFoundError
from app.middleware.rate_limiter import ReadRateLimit, WriteRateLimit
from app.schemas.review import ReviewCreate, ReviewRating, ReviewResponse
from app.services.products import ensure_owner, get_product
from app.services.reviews import (
    find_review,
    get_review,
    list_product_reviews,
    list_user_reviews,
    rate_review,
    submit_review,
)

router = APIRouter(prefix="/api/v1", tags=["reviews"])


@router.post("/products/{product_id}/reviews", response_model=ReviewResponse, status_code=201)
async def submit_review_endpoint(
    product_id: str,
    body: ReviewCreate,
    user: CurrentUser,
    gateway: GatewayDep,
    _rate: WriteRateLimit,
) -> ReviewResponse:
    """Submit one review of a published product.

    Owners cannot review their own product (403) and each user reviews a
    product at most once (409).
    """
    product = await get_product(gateway, product_id)
    if product.owner_id == user.id:
        raise ForbiddenError("Cannot review your own product")
    if await find_review(gateway, user.id, product_id) is not None:
        raise DuplicateReviewError("You have already reviewed this product")

    review = await submit_review(gateway, user.id, product_id, body.answers)
    return ReviewResponse.model_validate(review)


@router.get("/products/{product_id}/reviews", response_model=list[ReviewResponse])
async def list_reviews_for_product(
    product_id: str,
    user: CurrentUser,
    gateway: GatewayDep,
    _rate: ReadRateLimit,
) -> list[ReviewResponse]:
    ensure_owner(await get_product(gateway, product_id), user.id)
    reviews = await list_product_reviews(gateway, product_id)
    return [ReviewResponse.model_validate(r) for r in reviews]


@router.get("/products/{product_id}/reviews/mine", response_model=ReviewResponse)
async def get_my_review(
    product_id: str,
    user: CurrentUser,
    gateway: GatewayDep,
    _rate: ReadRateLimit,
) -> ReviewResponse:
    review = await find_review(gateway, user.id, product_id)
    if review is None:
        raise NotFoundError("You have not reviewed this product")
    return ReviewResponse.model_validate(review)


@router.put("/reviews/{review_id}/rating", response_model=ReviewResponse)
async def rate_review_endpoint(
    review_id: str,
    body: ReviewRating,
    user: CurrentUser,
    gateway: GatewayDep,
    _rate: WriteRateLimit,
) -> ReviewResponse:
    """Rate a review of one of the caller's products.

    Re-rating is allowed: the reviewer's karma is corrected by the
    difference between the old and new rewards.
    """
    review = await get_review(gateway, review_id)
    ensure_owner(await get_product(gateway, review.product_id), user.id)
    rated = await rate_review(gateway, review_id, body.rating)
    return ReviewResponse.model_validate(rated)


@router.get("/reviews/mine", response_model=list[ReviewResponse])
async def list_my_reviews(
    user: CurrentUser,
    gateway: GatewayDep,
    _rate: ReadRateLimit,
) -> list[ReviewResponse]:
    """Reviews the caller wrote plus reviews left on the caller's products, newest first."""
    reviews = await list_user_reviews(gateway, user)
    return [ReviewResponse.model_validate(r) for r in reviews]
