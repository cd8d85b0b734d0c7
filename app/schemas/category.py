"""
Venue Gallery Backend — Category Schemas
=========================================

What:  Request bodies and response shapes for /api/categories.

Input rules:
    name         2-50 characters after trimming (stored lowercased)
    description  up to 200 characters
Unknown body fields are ignored.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import ConfigDict, Field

from app.schemas.common import CamelModel


class CategoryCreate(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    name: str = Field(min_length=2, max_length=50, description="Unique category name")
    description: Optional[str] = Field(default=None, max_length=200)


class CategoryUpdate(CamelModel):
    """Partial update: only the fields present in the body are changed."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    description: Optional[str] = Field(default=None, max_length=200)


class CategoryResponse(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    slug: str
    is_active: bool
    image_count: int
    created_at: datetime
    updated_at: datetime


class CategorySummary(CamelModel):
    """Compact category header used on the homepage."""

    id: str
    name: str
    slug: str
    description: Optional[str] = None


class CategoryStats(CamelModel):
    total_categories: int = 0
    total_images: int = 0
    average_images_per_category: float = 0


class CategoryDeleteResult(CamelModel):
    category: str = Field(description="Name of the deleted category")
    deleted_images_count: int
    failed_asset_deletions: List[str] = Field(
        default_factory=list,
        description="Remote asset ids whose best-effort deletion failed",
    )
