"""
Venue Gallery Backend — Category SQLAlchemy Model
==================================================

What:  ORM model representing the `categories` table.
Who:   Used by CategoryService / ImageService through the StorageGateway and
       by Alembic for schema management.

Table Design:
    - name: unique, stored trimmed and lowercased (2-50 chars)
    - slug: unique, derived from name by slugify(); recomputed on rename
    - is_active: soft-delete marker; every read path filters on it
    - image_count: cache of active images in this category. Steady-state
      maintenance is an atomic UPDATE ... SET image_count = image_count ± 1;
      CategoryService.reconcile_image_count() is the repair path.
"""

import re
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.common import TimestampMixin, generate_object_id

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")


def normalize_category_name(name: str) -> str:
    """Trim and lowercase a category name (the form stored and compared)."""
    return name.strip().lower()


def slugify(name: str) -> str:
    """
    Derive the URL slug for a category name.

    Lowercase, runs of non-alphanumeric characters collapsed into a single
    hyphen, no leading or trailing hyphen.

        >>> slugify("Grand Hall #1")
        'grand-hall-1'
    """
    return _NON_ALPHANUMERIC.sub("-", name.lower()).strip("-")


class Category(TimestampMixin, Base):
    """
    A named grouping that owns zero or more images.

    Query Patterns:
        - Active listing: WHERE is_active ORDER BY name
        - Name lookup: WHERE lower(name) LIKE %term% (names are stored lowercase)
        - Counter update: UPDATE categories SET image_count = image_count + 1 WHERE id = :id
    """

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(
        String(24),
        primary_key=True,
        default=generate_object_id,
    )

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        comment="Trimmed, lowercased category name",
    )

    description: Mapped[Optional[str]] = mapped_column(
        String(200),
        nullable=True,
        default=None,
    )

    slug: Mapped[str] = mapped_column(
        String(60),
        nullable=False,
        unique=True,
        comment="URL slug derived from name",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )

    image_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
        comment="Cached number of active images referencing this category",
    )

    __table_args__ = (
        CheckConstraint("image_count >= 0", name="ck_categories_image_count_non_negative"),
        Index("idx_categories_is_active", "is_active"),
    )

    def rename(self, name: str) -> None:
        """Set a new (normalized) name and recompute the slug."""
        self.name = normalize_category_name(name)
        self.slug = slugify(self.name)

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name='{self.name}', image_count={self.image_count})>"
