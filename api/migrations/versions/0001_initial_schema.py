"""Initial schema: users, products, reviews

Revision ID: 4f1c2a9e7b30
Revises:
Create Date: 2026-10-19 00:00:00.000000

Id lists (product_ids, review_ids), product images and question schemas are
stored as JSON columns, one row per gateway record.
"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSON

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4f1c2a9e7b30"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- users table ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True, unique=True),
        sa.Column("api_key_hash", sa.String(255), nullable=True, unique=True),
        sa.Column("display_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("karma_points", sa.Integer(), nullable=False),
        sa.Column("product_ids", JSON(), nullable=False, server_default="[]"),
        sa.Column("review_ids", JSON(), nullable=False, server_default="[]"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index("ix_users_karma_points", "users", ["karma_points"])

    # --- products table ---
    op.create_table(
        "products",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "owner_id",
            sa.String(128),
            sa.ForeignKey("users.id", name="fk_products_owner_id_users"),
            nullable=False,
        ),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("link", sa.Text(), nullable=False),
        sa.Column("images", JSON(), nullable=False, server_default="[]"),
        sa.Column("image_url", sa.Text(), nullable=False, server_default=""),
        sa.Column("review_schema", JSON(), nullable=False, server_default="[]"),
        sa.Column("review_ids", JSON(), nullable=False, server_default="[]"),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("feedback_objective", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index("ix_products_owner_id", "products", ["owner_id"])
    op.create_index("ix_products_status", "products", ["status"])
    op.create_index("ix_products_created_at", "products", ["created_at"])

    # --- reviews table ---
    # No unique (reviewer_id, product_id): the duplicate check happens before submit
    op.create_table(
        "reviews",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "reviewer_id",
            sa.String(128),
            sa.ForeignKey("users.id", name="fk_reviews_reviewer_id_users"),
            nullable=False,
        ),
        sa.Column(
            "product_id",
            sa.String(36),
            sa.ForeignKey("products.id", name="fk_reviews_product_id_products"),
            nullable=False,
        ),
        sa.Column("answers", JSON(), nullable=False),
        sa.Column("quality_rating", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index("ix_reviews_reviewer_id", "reviews", ["reviewer_id"])
    op.create_index("ix_reviews_product_id", "reviews", ["product_id"])
    op.create_index("ix_reviews_created_at", "reviews", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_reviews_created_at", table_name="reviews")
    op.drop_index("ix_reviews_product_id", table_name="reviews")
    op.drop_index("ix_reviews_reviewer_id", table_name="reviews")
    op.drop_table("reviews")

    op.drop_index("ix_products_created_at", table_name="products")
    op.drop_index("ix_products_status", table_name="products")
    op.drop_index("ix_products_owner_id", table_name="products")
    op.drop_table("products")

    op.drop_index("ix_users_karma_points", table_name="users")
    op.drop_table("users")
