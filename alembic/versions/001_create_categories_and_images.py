"""Create categories and images tables

Revision ID: 001
Revises: None
Create Date: 2026-10-18 00:00:00.000000+00:00

What:  Creates `categories` and `images` with their unique constraints,
       check constraints and read-path indexes.
How:   Portable column types only (String, Integer, Boolean, JSON,
       timezone-aware DateTime); ids are generated by the application.

Rollback: downgrade() drops both tables (destructive — all data lost).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "categories",
        sa.Column("id", sa.String(24), nullable=False),
        sa.Column("name", sa.String(50), nullable=False, comment="Trimmed, lowercased category name"),
        sa.Column("description", sa.String(200), nullable=True),
        sa.Column("slug", sa.String(60), nullable=False, comment="URL slug derived from name"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "image_count",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
            comment="Cached number of active images referencing this category",
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_categories"),
        sa.UniqueConstraint("name", name="uq_categories_name"),
        sa.UniqueConstraint("slug", name="uq_categories_slug"),
        sa.CheckConstraint("image_count >= 0", name="ck_categories_image_count_non_negative"),
    )
    op.create_index("idx_categories_is_active", "categories", ["is_active"])

    op.create_table(
        "images",
        sa.Column("id", sa.String(24), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("category_id", sa.String(24), nullable=False),
        sa.Column(
            "asset_id",
            sa.String(255),
            nullable=False,
            comment="Remote asset identifier (Cloudinary public_id)",
        ),
        sa.Column("image_url", sa.String(1024), nullable=False),
        sa.Column("thumbnail_url", sa.String(1024), nullable=False),
        sa.Column("original_file_name", sa.String(255), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column(
            "mime_type",
            sa.String(50),
            nullable=False,
            comment="Format reported by the asset host (jpg, png, webp, ...)",
        ),
        sa.Column("width", sa.Integer(), nullable=False),
        sa.Column("height", sa.Integer(), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_images"),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"], name="fk_images_category_id"),
        sa.UniqueConstraint("asset_id", name="uq_images_asset_id"),
        sa.CheckConstraint("file_size >= 0", name="ck_images_file_size_non_negative"),
        sa.CheckConstraint("view_count >= 0", name="ck_images_view_count_non_negative"),
    )
    op.create_index("idx_images_category_active", "images", ["category_id", "is_active"])
    op.create_index("idx_images_featured_active", "images", ["is_featured", "is_active"])
    op.create_index("idx_images_created_at", "images", ["created_at"])
    op.create_index("idx_images_view_count", "images", ["view_count"])


def downgrade() -> None:
    op.drop_index("idx_images_view_count", table_name="images")
    op.drop_index("idx_images_created_at", table_name="images")
    op.drop_index("idx_images_featured_active", table_name="images")
    op.drop_index("idx_images_category_active", table_name="images")
    op.drop_table("images")
    op.drop_index("idx_categories_is_active", table_name="categories")
    op.drop_table("categories")
