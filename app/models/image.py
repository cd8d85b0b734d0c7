"""
Venue Gallery Backend — Image SQLAlchemy Model
===============================================

What:  ORM model representing the `images` table.
Who:   Used by ImageService / CategoryService through the StorageGateway and
       by Alembic for schema management.

Table Design:
    - category_id: required reference to categories.id (no ORM relationship;
      services query both tables explicitly)
    - asset_id: unique identifier of the remote asset (Cloudinary public_id),
      the join key to the asset host
    - image_url / thumbnail_url: permanent URL and derived thumbnail URL
    - tags: ordered JSON list of short strings
    - view_count: only ever incremented (atomic UPDATE on read-by-id)

Indexes mirror the read paths:
    (category_id, is_active)  homepage / per-category listing
    (is_featured, is_active)  featured listing
    created_at                newest-first ordering
    view_count                most-viewed ordering
"""

from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.common import TimestampMixin, generate_object_id


class Image(TimestampMixin, Base):
    """
    One uploaded picture. Always references exactly one category.

    Lifecycle:
        1. Created after the asset host accepted the upload
        2. Patched field-by-field (title, description, tags, featured, category)
        3. Deleted after its remote asset was removed
    """

    __tablename__ = "images"

    id: Mapped[str] = mapped_column(
        String(24),
        primary_key=True,
        default=generate_object_id,
    )

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True, default=None)

    category_id: Mapped[str] = mapped_column(
        String(24),
        ForeignKey("categories.id"),
        nullable=False,
    )

    asset_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        comment="Remote asset identifier (Cloudinary public_id)",
    )
    image_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    thumbnail_url: Mapped[str] = mapped_column(String(1024), nullable=False)

    original_file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mime_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Format reported by the asset host (jpg, png, webp, ...)",
    )
    width: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    height: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    is_featured: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    view_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )

    __table_args__ = (
        CheckConstraint("file_size >= 0", name="ck_images_file_size_non_negative"),
        CheckConstraint("view_count >= 0", name="ck_images_view_count_non_negative"),
        Index("idx_images_category_active", "category_id", "is_active"),
        Index("idx_images_featured_active", "is_featured", "is_active"),
        Index("idx_images_created_at", "created_at"),
        Index("idx_images_view_count", "view_count"),
    )

    def __repr__(self) -> str:
        return f"<Image(id={self.id}, title='{self.title}', category_id={self.category_id})>"
