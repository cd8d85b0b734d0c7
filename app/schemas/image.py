"""
Venue Gallery Backend — Image Schemas
======================================

What:  Upload metadata, patch bodies, listing options and response shapes
       for /api/images.

Input rules:
    title        1-100 characters
    description  up to 500 characters
    tags         each tag up to 30 characters (comma-separated on upload forms)
    category     24-hex category id
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Annotated, List, Literal, Optional

from pydantic import ConfigDict, Field, StringConstraints

from app.exceptions import ValidationError
from app.models.common import OBJECT_ID_PATTERN
from app.schemas.category import CategoryResponse, CategorySummary
from app.schemas.common import CamelModel

MAX_TAG_LENGTH = 30

Tag = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=MAX_TAG_LENGTH)]

SortField = Literal["createdAt", "title", "viewCount", "updatedAt"]
SortOrder = Literal["asc", "desc"]


def parse_tags(raw: Optional[str]) -> List[str]:
    """
    Split a comma-separated tag string from an upload form.

        >>> parse_tags(" garden, evening ,,lights")
        ['garden', 'evening', 'lights']

    Raises:
        ValidationError: a tag is longer than MAX_TAG_LENGTH
    """
    if not raw:
        return []
    tags = [tag.strip() for tag in raw.split(",") if tag.strip()]
    too_long = [tag for tag in tags if len(tag) > MAX_TAG_LENGTH]
    if too_long:
        raise ValidationError(
            message="Validation failed",
            errors=[
                {"field": "tags", "message": f"Each tag cannot exceed {MAX_TAG_LENGTH} characters"}
            ],
            context={"tags": too_long},
        )
    return tags


def clean_text(
    value: Optional[str],
    field: str,
    max_length: int,
    min_length: int = 0,
) -> Optional[str]:
    """
    Trim a multipart form field, then apply its length rules.

    JSON bodies get this from ``str_strip_whitespace`` on their models; form
    fields arrive as plain strings, so the rules are applied after trimming
    here. A blank optional field (``min_length=0``) becomes None.

        >>> clean_text("  Sunset Shot ", "title", 100, min_length=1)
        'Sunset Shot'

    Raises:
        ValidationError: the trimmed value is shorter than ``min_length`` or
                         longer than ``max_length``
    """
    text = (value or "").strip()
    if not text and min_length == 0:
        return None
    if not min_length <= len(text) <= max_length:
        if min_length:
            message = f"Must be between {min_length} and {max_length} characters"
        else:
            message = f"Cannot exceed {max_length} characters"
        raise ValidationError(
            message="Validation failed",
            errors=[{"field": field, "message": message}],
            context={field: len(text)},
        )
    return text


@dataclass
class ImageMetadata:
    """Descriptive fields supplied alongside an uploaded file."""

    title: str
    original_file_name: str
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    is_featured: bool = False


@dataclass
class ImageListOptions:
    """Filters, ordering and paging for ImageService.list()."""

    page: int = 1
    limit: int = 20
    sort_by: str = "createdAt"
    sort_order: str = "desc"
    category: Optional[str] = None
    featured: Optional[bool] = None
    search: Optional[str] = None


class ImageUpdate(CamelModel):
    """Partial update: only the fields present in the body are changed."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = Field(default=None, pattern=OBJECT_ID_PATTERN)
    tags: Optional[List[Tag]] = None
    is_featured: Optional[bool] = None


class ImageResponse(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    category_id: str
    asset_id: str
    image_url: str
    thumbnail_url: str
    original_file_name: str
    file_size: int
    mime_type: str
    width: int
    height: int
    tags: List[str] = Field(default_factory=list)
    is_active: bool
    is_featured: bool
    view_count: int
    created_at: datetime
    updated_at: datetime


class HomepageImage(CamelModel):
    id: str
    title: str
    image_url: str
    thumbnail_url: str
    created_at: datetime


class HomepageSection(CamelModel):
    category: CategorySummary
    images: List[HomepageImage] = Field(default_factory=list)


class ImageWithCategory(CamelModel):
    image: ImageResponse
    category: CategoryResponse


class ImageStats(CamelModel):
    total_images: int = 0
    total_views: int = 0
    average_views: float = 0
    featured_images: int = 0
    total_file_size: int = 0


class ImageDeleteResult(CamelModel):
    title: str
    asset_id: str


class BatchUploadResult(CamelModel):
    category: CategoryResponse
    images: List[ImageResponse]
    total_images: int
