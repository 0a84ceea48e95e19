"""Product upload, lifecycle and listing endpoints.

POST  /api/v1/products                      -- create a draft (or create-and-publish)
GET   /api/v1/products                      -- published products ordered for the viewer
GET   /api/v1/products/mine                 -- caller's products, drafts included
GET   /api/v1/products/stream               -- SSE: listing snapshot on every change
GET   /api/v1/products/{product_id}         -- one product (drafts: owner only)
PATCH /api/v1/products/{product_id}         -- edit a draft
POST  /api/v1/products/{product_id}/publish -- draft -> published
POST  /api/v1/products/{product_id}/images  -- upload an image to a draft
"""

import json
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, Request, Security
from fastapi.responses import StreamingResponse

from app.config import settings
from app.dependencies import (
    CurrentUser,
    GatewayDep,
    GatewayOpenerDep,
    OptionalUser,
    optional_api_key_header,
    user_for_api_key,
)
from app.errors import NotFoundError, ValidationError
from app.gateway.base import PRODUCTS, USERS, Gateway
from app.gateway.records import ProductRecord, UserRecord, decode
from app.middleware.rate_limiter import ReadRateLimit, WriteRateLimit
from app.models.product import ProductStatus
from app.schemas.product import ImageUploadResponse, ProductCreate, ProductResponse, ProductUpdate
from app.services.images import ImageStorage
from app.services.lifecycle import ensure_editable
from app.services.listing import gateway_karma_lookup, sort_for_viewer
from app.services.products import (
    add_image,
    create_product,
    ensure_owner,
    get_product,
    list_products,
    publish_product,
    update_product,
)

router = APIRouter(prefix="/api/v1", tags=["products"])
log = structlog.get_logger(__name__)


def get_image_storage() -> ImageStorage:
    return ImageStorage()


async def _listing(
    gateway: Gateway, products: list[ProductRecord], viewer_id: Optional[str]
) -> list[ProductResponse]:
    viewer_karma = None
    if viewer_id is not None:
        raw_viewer = await gateway.get(USERS, viewer_id)
        if raw_viewer is not None:
            viewer_karma = decode(UserRecord, raw_viewer).karma_points
    ordered = await sort_for_viewer(products, viewer_karma, gateway_karma_lookup(gateway))
    return [ProductResponse.from_record(p) for p in ordered]


@router.post("/products", response_model=ProductResponse, status_code=201)
async def create_product_endpoint(
    body: ProductCreate,
    user: CurrentUser,
    gateway: GatewayDep,
    _rate: WriteRateLimit,
) -> ProductResponse:
    """Create a product owned by the caller.

    Empty choices are stripped from choice questions and exactly one image
    is marked primary. With publish=true the product must pass publish
    validation (422 otherwise).
    """
    product = await create_product(
        gateway,
        user.id,
        name=body.name,
        description=body.description,
        link=body.link,
        review_schema=body.review_schema,
        images=body.images,
        image_url=body.image_url,
        feedback_objective=body.feedback_objective,
        publish=body.publish,
    )
    return ProductResponse.from_record(product)


@router.get("/products", response_model=list[ProductResponse])
async def list_published_products(viewer: OptionalUser, gateway: GatewayDep) -> list[ProductResponse]:
    """Published products, newest first, with the viewer's tier peers on top.

    Anonymous callers get plain newest-first order.
    """
    products = await list_products(gateway, status=ProductStatus.published.value)
    return await _listing(gateway, products, viewer.id if viewer else None)


@router.get("/products/mine", response_model=list[ProductResponse])
async def list_my_products(
    user: CurrentUser,
    gateway: GatewayDep,
    _rate: ReadRateLimit,
) -> list[ProductResponse]:
    products = await list_products(gateway, owner_id=user.id)
    return [ProductResponse.from_record(p) for p in products]


@router.get("/products/stream")
async def stream_products(
    request: Request,
    open_scope: GatewayOpenerDep,
    raw_key: Optional[str] = Security(optional_api_key_header),
) -> StreamingResponse:
    """Server-Sent Events stream of the published listing.

    Sends the current listing immediately, then a fresh one after every
    committed product change, and a heartbeat when nothing happened for
    stream_heartbeat_seconds. Closing the connection unsubscribes.
    """
    # Resolve the viewer up front; no gateway scope stays open while streaming
    async with open_scope() as gateway:
        viewer = await user_for_api_key(raw_key, gateway) if raw_key else None
        feed = gateway.feed
    viewer_id = viewer.id if viewer else None

    async def generate():
        snapshots = feed.snapshots(
            PRODUCTS, "created_at", "desc", heartbeat=settings.stream_heartbeat_seconds
        )
        log.info("product_stream_opened", viewer_id=viewer_id)
        try:
            async for snapshot in snapshots:
                if await request.is_disconnected():
                    break
                if snapshot is None:
                    yield f"data: {json.dumps({'type': 'heartbeat'})}\n\n"
                    continue
                published = [
                    decode(ProductRecord, row)
                    for row in snapshot
                    if row["status"] == ProductStatus.published
                ]
                async with open_scope() as gateway:
                    listing = await _listing(gateway, published, viewer_id)
                payload = {"type": "products", "products": [p.model_dump(mode="json") for p in listing]}
                yield f"data: {json.dumps(payload)}\n\n"
        finally:
            await snapshots.aclose()
            log.info("product_stream_closed", viewer_id=viewer_id, remaining=feed.subscriber_count(PRODUCTS))

    return StreamingResponse(
        generate(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


@router.get("/products/{product_id}", response_model=ProductResponse)
async def get_product_endpoint(
    product_id: str,
    viewer: OptionalUser,
    gateway: GatewayDep,
) -> ProductResponse:
    """Published products are public; a draft is visible to its owner only (404 otherwise)."""
    product = await get_product(gateway, product_id)
    if product.status != ProductStatus.published and (viewer is None or viewer.id != product.owner_id):
        raise NotFoundError("Product not found")
    return ProductResponse.from_record(product)


@router.patch("/products/{product_id}", response_model=ProductResponse)
async def update_product_endpoint(
    product_id: str,
    body: ProductUpdate,
    user: CurrentUser,
    gateway: GatewayDep,
    _rate: WriteRateLimit,
) -> ProductResponse:
    """Edit a draft. Published products answer 409 (edit_not_allowed)."""
    ensure_owner(await get_product(gateway, product_id), user.id)

    changes = body.model_dump(exclude_unset=True, exclude={"review_schema", "images"})
    if "review_schema" in body.model_fields_set and body.review_schema is not None:
        changes["review_schema"] = body.review_schema
    if "images" in body.model_fields_set and body.images is not None:
        changes["images"] = body.images

    product = await update_product(gateway, product_id, **changes)
    return ProductResponse.from_record(product)


@router.post("/products/{product_id}/publish", response_model=ProductResponse)
async def publish_product_endpoint(
    product_id: str,
    user: CurrentUser,
    gateway: GatewayDep,
    _rate: WriteRateLimit,
) -> ProductResponse:
    """Publish a draft.

    422 when required fields or questions are incomplete, 409
    (already_published) when it is already live.
    """
    ensure_owner(await get_product(gateway, product_id), user.id)
    product = await publish_product(gateway, product_id)
    return ProductResponse.from_record(product)


@router.post("/products/{product_id}/images", response_model=ImageUploadResponse, status_code=201)
async def upload_product_image(
    product_id: str,
    request: Request,
    user: CurrentUser,
    gateway: GatewayDep,
    _rate: WriteRateLimit,
    storage: ImageStorage = Depends(get_image_storage),
    filename: str = Query(default="image", min_length=1, max_length=200),
) -> ImageUploadResponse:
    """Upload a raw PNG/JPEG request body and attach it to a draft product.

    The image must be sent as the request body with its Content-Type
    header; the original file name goes in the `filename` query parameter.
    """
    product = await get_product(gateway, product_id)
    ensure_owner(product, user.id)
    ensure_editable(product)

    declared_length = request.headers.get("content-length")
    if declared_length and declared_length.isdigit() and int(declared_length) > settings.max_image_bytes:
        raise ValidationError(
            f"Image size must be less than {settings.max_image_bytes // 1024}KB"
        )

    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    data = await request.body()
    url = await storage.upload(product_id, filename, content_type, data)

    product = await add_image(gateway, product_id, url)
    return ImageUploadResponse(url=url, product=ProductResponse.from_record(product))
