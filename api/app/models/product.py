import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import JSON
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ProductStatus(str, enum.Enum):
    draft = "draft"
    published = "published"


class Product(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[str] = mapped_column(Text, nullable=False)

    # [{"url": ..., "is_primary": bool}, ...]
    images: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    # Legacy flat display image, mirrors the effective primary image
    image_url: Mapped[str] = mapped_column(Text, default="", nullable=False)

    # [{"question": ..., "type": ..., "choices": [...] | null}, ...]
    review_schema: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    review_ids: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    # Lifecycle: draft -> published, never back
    status: Mapped[str] = mapped_column(
        String(20), default=ProductStatus.draft, nullable=False, index=True
    )
    feedback_objective: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
