"""Product operations over the gateway: create, update, publish, read.

Every write that touches more than one record (product + owner's id list)
runs in a single gateway transaction.
"""

import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

import structlog

from app.errors import ForbiddenError, NotFoundError
from app.gateway.base import PRODUCTS, USERS, Gateway
from app.gateway.records import ProductImage, ProductRecord, QuestionSpec, decode, encode
from app.metrics import products_published
from app.models.product import ProductStatus
from app.services.lifecycle import (
    clean_review_schema,
    display_image,
    ensure_editable,
    ensure_publishable,
    normalize_objective,
    resolve_images,
)

log = structlog.get_logger(__name__)

_UNSET = object()


async def get_product(gateway: Gateway, product_id: str, for_update: bool = False) -> ProductRecord:
    raw = await gateway.get(PRODUCTS, product_id, for_update=for_update)
    if raw is None:
        raise NotFoundError("Product not found")
    return decode(ProductRecord, raw)


def ensure_owner(product: ProductRecord, user_id: str) -> None:
    if product.owner_id != user_id:
        raise ForbiddenError("Only the product owner can do this")


async def create_product(
    gateway: Gateway,
    owner_id: str,
    *,
    name: str,
    description: str,
    link: str,
    review_schema: Iterable[QuestionSpec],
    images: Iterable[ProductImage] = (),
    image_url: str = "",
    feedback_objective: Optional[str] = None,
    publish: bool = False,
) -> ProductRecord:
    """Create a draft product owned by owner_id.

    With publish=True the product is validated exactly as publish_product()
    would and stored directly as published.
    """
    resolved = resolve_images(images)
    product = ProductRecord(
        id=str(uuid.uuid4()),
        owner_id=owner_id,
        name=name,
        description=description,
        link=link,
        images=resolved,
        image_url=display_image(resolved, image_url) or "",
        review_schema=clean_review_schema(review_schema),
        review_ids=[],
        status=ProductStatus.draft.value,
        feedback_objective=normalize_objective(feedback_objective),
        created_at=datetime.now(timezone.utc),
    )
    if publish:
        ensure_publishable(product)
        product = product.model_copy(update={"status": ProductStatus.published.value})

    async with gateway.transaction():
        await gateway.create(PRODUCTS, product.id, encode(product))
        await gateway.array_union(USERS, owner_id, "product_ids", product.id)

    log.info("product_created", product_id=product.id, owner_id=owner_id, status=product.status)
    if publish:
        products_published.inc()
    return product


async def update_product(
    gateway: Gateway,
    product_id: str,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
    link: Optional[str] = None,
    review_schema: Optional[Iterable[QuestionSpec]] = None,
    images: Optional[Iterable[ProductImage]] = None,
    image_url: Optional[str] = None,
    feedback_objective=_UNSET,
) -> ProductRecord:
    """Patch a draft product. Fields left as None are not touched.

    Raises:
        NotFoundError: unknown product.
        EditNotAllowedError: the product is already published.
    """
    async with gateway.transaction():
        product = await get_product(gateway, product_id, for_update=True)
        ensure_editable(product)

        patch: dict = {}
        for field, value in (("name", name), ("description", description), ("link", link)):
            if value is not None:
                patch[field] = value
        if review_schema is not None:
            patch["review_schema"] = clean_review_schema(review_schema)
        if feedback_objective is not _UNSET:
            patch["feedback_objective"] = normalize_objective(feedback_objective)

        resolved = resolve_images(images) if images is not None else product.images
        legacy = image_url if image_url is not None else product.image_url
        if images is not None:
            patch["images"] = resolved
        if images is not None or image_url is not None:
            patch["image_url"] = display_image(resolved, legacy) or ""

        updated = product.model_copy(update=patch)
        await gateway.update(PRODUCTS, product_id, _changed_fields(updated, patch))

    log.info("product_updated", product_id=product_id, fields=sorted(patch))
    return updated


async def publish_product(gateway: Gateway, product_id: str) -> ProductRecord:
    """Move a draft to published.

    Raises:
        NotFoundError: unknown product.
        AlreadyPublishedError: the product is already published.
        ValidationError: required fields or question schema are incomplete.
    """
    async with gateway.transaction():
        product = await get_product(gateway, product_id, for_update=True)
        ensure_publishable(product)
        await gateway.update(PRODUCTS, product_id, {"status": ProductStatus.published.value})

    products_published.inc()
    log.info("product_published", product_id=product_id)
    return product.model_copy(update={"status": ProductStatus.published.value})


async def add_image(gateway: Gateway, product_id: str, url: str) -> ProductRecord:
    """Append an uploaded image to a draft; the first image becomes primary."""
    async with gateway.transaction():
        product = await get_product(gateway, product_id, for_update=True)
        ensure_editable(product)
        images = resolve_images([*product.images, ProductImage(url=url)])
        patch = {"images": images, "image_url": display_image(images, product.image_url) or ""}
        updated = product.model_copy(update=patch)
        await gateway.update(PRODUCTS, product_id, _changed_fields(updated, patch))
    return updated


async def list_products(
    gateway: Gateway,
    *,
    status: Optional[str] = None,
    owner_id: Optional[str] = None,
) -> list[ProductRecord]:
    """Products newest first, optionally filtered by status and/or owner."""
    filters = {}
    if status is not None:
        filters["status"] = status
    if owner_id is not None:
        filters["owner_id"] = owner_id
    rows = await gateway.query(PRODUCTS, filters, order_field="created_at", direction="desc")
    return [decode(ProductRecord, row) for row in rows]


def _changed_fields(product: ProductRecord, patch: dict) -> dict:
    dumped = encode(product)
    return {field: dumped[field] for field in patch}
