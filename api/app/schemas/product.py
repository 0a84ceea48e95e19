"""Pydantic schemas for product upload, editing and listing."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.gateway.records import ProductImage, ProductRecord, QuestionSpec
from app.services.lifecycle import display_image


class ProductCreate(BaseModel):
    """Request schema for uploading a product.

    Drafts may be incomplete; set publish=true to validate and publish in
    one step.
    """

    name: str = Field("", max_length=200)
    description: str = ""
    link: str = ""
    review_schema: list[QuestionSpec] = Field(default_factory=list, max_length=20)
    images: list[ProductImage] = Field(default_factory=list, max_length=10)
    image_url: str = ""
    feedback_objective: Optional[str] = Field(None, max_length=2000)
    publish: bool = False


class ProductUpdate(BaseModel):
    """Partial update of a draft; omitted fields are left unchanged."""

    name: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    link: Optional[str] = None
    review_schema: Optional[list[QuestionSpec]] = Field(None, max_length=20)
    images: Optional[list[ProductImage]] = Field(None, max_length=10)
    image_url: Optional[str] = None
    feedback_objective: Optional[str] = Field(None, max_length=2000)


class ProductResponse(BaseModel):
    id: str
    owner_id: str
    name: str
    description: str
    link: str
    images: list[ProductImage]
    display_image: Optional[str] = None
    review_schema: list[QuestionSpec]
    review_count: int
    status: str
    feedback_objective: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_record(cls, product: ProductRecord) -> "ProductResponse":
        return cls(
            id=product.id,
            owner_id=product.owner_id,
            name=product.name,
            description=product.description,
            link=product.link,
            images=product.images,
            display_image=display_image(product.images, product.image_url),
            review_schema=product.review_schema,
            review_count=len(product.review_ids),
            status=product.status,
            feedback_objective=product.feedback_objective,
            created_at=product.created_at,
        )


class ImageUploadResponse(BaseModel):
    url: str
    product: ProductResponse
