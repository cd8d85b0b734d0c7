"""
Venue Gallery Backend — Image Route Handlers
=============================================

What:  /api/images: multipart upload (into an existing or a new category,
       one file or a batch), homepage sections, listing with filters and
       pagination, featured images, per-category listing, search, stats,
       detail, partial update and deletion.
How:   Validates the form / query / body, runs upload validation before any
       remote call, delegates to ImageService and wraps the result in the
       ApiResponse envelope.
Who:   Called by the public gallery frontend and the admin upload screen.

Request Flow (POST /api/images):
    1. Client sends multipart/form-data: image, title, category, description?,
       tags? (comma-separated), isFeatured?
    2. FileService checks presence, extension, declared type and reported
       size before the body is read; then actual size and detected type
    3. Text fields are trimmed, then length-checked
    4. ImageService verifies the category, uploads to the asset host,
       writes the row and bumps the category's image count
    5. 201 Created with the stored image

Batch uploads (POST /api/images/batch, /api/images/batch/with-category):
    Up to 10 files in the repeated ``images`` field. Every file is
    validated before the first remote call; titles default to each file's
    name without its extension.

Route order matters: homepage, featured, category/{name}, search and stats
are declared before /{image_id}.
"""

import logging
from pathlib import Path as FilePath
from typing import Annotated, List, Optional, Tuple

from fastapi import APIRouter, Depends, File, Form, Path, Query, UploadFile

from app.dependencies import get_file_service, get_image_service
from app.exceptions import ValidationError
from app.models.common import OBJECT_ID_PATTERN
from app.schemas.category import CategoryResponse
from app.schemas.common import ApiResponse, ErrorResponse, PaginatedResponse
from app.schemas.image import (
    BatchUploadResult,
    HomepageSection,
    ImageDeleteResult,
    ImageListOptions,
    ImageMetadata,
    ImageResponse,
    ImageStats,
    ImageUpdate,
    ImageWithCategory,
    SortField,
    SortOrder,
    clean_text,
    parse_tags,
)
from app.services.file_service import FileService
from app.services.image_service import ImageService, check_batch_size

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/images", tags=["Images"])

ImageId = Annotated[
    str, Path(pattern=OBJECT_ID_PATTERN, description="24-character hexadecimal image id")
]

TITLE_MAX = 100
DESCRIPTION_MAX = 500
CATEGORY_NAME_MIN, CATEGORY_NAME_MAX = 2, 50
CATEGORY_DESCRIPTION_MAX = 200

NOT_FOUND = {404: {"description": "Image not found", "model": ErrorResponse}}
BAD_REQUEST = {400: {"description": "Invalid input", "model": ErrorResponse}}
UPLOAD_RESPONSES = {
    **BAD_REQUEST,
    429: {"description": "Upload rate limit exceeded", "model": ErrorResponse},
    500: {"description": "Image hosting service failure", "model": ErrorResponse},
}
CATEGORY_CONFLICT = {409: {"description": "Category name already exists", "model": ErrorResponse}}
CATEGORY_NOT_FOUND = {404: {"description": "Category not found", "model": ErrorResponse}}


def _one(image) -> ImageResponse:
    return ImageResponse.model_validate(image)


def _many(images) -> List[ImageResponse]:
    return [ImageResponse.model_validate(image) for image in images]


async def _read_upload(
    image: Optional[UploadFile],
    file_service: FileService,
) -> bytes:
    """
    Validate and read one uploaded file.

    Everything knowable without the content (name, declared type, reported
    size) is checked before the body is read.
    """
    if image is None:
        raise ValidationError(message="No file uploaded", field="image")
    file_service.check_before_read(image.filename, image.content_type, image.size)
    content = await image.read()
    file_service.validate_content(image.filename, content)
    return content


async def _read_batch(
    images: Optional[List[UploadFile]],
    file_service: FileService,
) -> List[Tuple[UploadFile, bytes]]:
    """Check the batch size, then validate every file before any is uploaded."""
    files = images or []
    check_batch_size(len(files))
    for upload in files:
        file_service.check_before_read(upload.filename, upload.content_type, upload.size)
    return [(upload, await _read_upload(upload, file_service)) for upload in files]


def _metadata(
    image: UploadFile,
    title: Optional[str],
    description: Optional[str],
    tags: Optional[str],
    is_featured: bool,
) -> ImageMetadata:
    return ImageMetadata(
        title=clean_text(title, "title", TITLE_MAX, min_length=1),
        description=clean_text(description, "description", DESCRIPTION_MAX),
        tags=parse_tags(tags),
        is_featured=is_featured,
        original_file_name=image.filename,
    )


def _batch_title(upload: UploadFile) -> str:
    return FilePath(upload.filename).stem.strip()[:TITLE_MAX] or "Untitled"


def _category_fields(name: str, description: Optional[str]) -> Tuple[str, Optional[str]]:
    return (
        clean_text(name, "categoryName", CATEGORY_NAME_MAX, min_length=CATEGORY_NAME_MIN),
        clean_text(description, "categoryDescription", CATEGORY_DESCRIPTION_MAX),
    )


# ── Uploads ───────────────────────────────────────────────────────────────


@router.post(
    "",
    status_code=201,
    response_model=ApiResponse[ImageResponse],
    responses={**UPLOAD_RESPONSES, **CATEGORY_NOT_FOUND},
    summary="Upload an image into a category",
    description=(
        "Multipart upload (JPEG, PNG, WebP or GIF). The image is stored on the asset "
        "host, limited to 800x600, and a 300x200 thumbnail URL is derived."
    ),
)
async def upload_image(
    image: Optional[UploadFile] = File(default=None, description="Image file"),
    title: str = Form(description="1-100 characters after trimming"),
    category: str = Form(pattern=OBJECT_ID_PATTERN, description="Category id"),
    description: Optional[str] = Form(default=None, description="Up to 500 characters"),
    tags: Optional[str] = Form(default=None, description="Comma-separated tags"),
    is_featured: bool = Form(default=False, alias="isFeatured"),
    service: ImageService = Depends(get_image_service),
    file_service: FileService = Depends(get_file_service),
) -> ApiResponse[ImageResponse]:
    metadata = _metadata(image, title, description, tags, is_featured) if image else None
    content = await _read_upload(image, file_service)
    stored = await service.upload(content, metadata, category)
    return ApiResponse(message="Image uploaded successfully", data=_one(stored))


@router.post(
    "/with-category",
    status_code=201,
    response_model=ApiResponse[ImageWithCategory],
    responses={**UPLOAD_RESPONSES, **CATEGORY_CONFLICT},
    summary="Create a category and upload its first image",
)
async def upload_image_with_category(
    image: Optional[UploadFile] = File(default=None, description="Image file"),
    title: str = Form(description="1-100 characters after trimming"),
    category_name: str = Form(alias="categoryName", description="2-50 characters after trimming"),
    category_description: Optional[str] = Form(default=None, alias="categoryDescription"),
    description: Optional[str] = Form(default=None, description="Up to 500 characters"),
    tags: Optional[str] = Form(default=None, description="Comma-separated tags"),
    is_featured: bool = Form(default=False, alias="isFeatured"),
    service: ImageService = Depends(get_image_service),
    file_service: FileService = Depends(get_file_service),
) -> ApiResponse[ImageWithCategory]:
    name, category_text = _category_fields(category_name, category_description)
    metadata = _metadata(image, title, description, tags, is_featured) if image else None
    content = await _read_upload(image, file_service)
    stored, category = await service.upload_with_new_category(content, metadata, name, category_text)
    return ApiResponse(
        message="Image and category created successfully",
        data=ImageWithCategory(
            image=_one(stored),
            category=CategoryResponse.model_validate(category),
        ),
    )


@router.post(
    "/batch",
    status_code=201,
    response_model=ApiResponse[BatchUploadResult],
    responses={**UPLOAD_RESPONSES, **CATEGORY_NOT_FOUND},
    summary="Upload up to 10 images into a category",
    description=(
        "All files are validated first. If one upload fails, the images already "
        "uploaded in this request are removed again and nothing is stored."
    ),
)
async def upload_batch(
    images: Optional[List[UploadFile]] = File(default=None, description="Up to 10 image files"),
    category: str = Form(pattern=OBJECT_ID_PATTERN, description="Category id"),
    description: Optional[str] = Form(default=None, description="Shared by every image"),
    tags: Optional[str] = Form(default=None, description="Comma-separated, shared by every image"),
    is_featured: bool = Form(default=False, alias="isFeatured"),
    service: ImageService = Depends(get_image_service),
    file_service: FileService = Depends(get_file_service),
) -> ApiResponse[BatchUploadResult]:
    files = await _read_batch(images, file_service)
    batch = [
        (content, _metadata(upload, _batch_title(upload), description, tags, is_featured))
        for upload, content in files
    ]
    stored, target = await service.upload_many(batch, category)
    return ApiResponse(
        message="Images uploaded successfully",
        data=BatchUploadResult(
            category=CategoryResponse.model_validate(target),
            images=_many(stored),
            total_images=len(stored),
        ),
    )


@router.post(
    "/batch/with-category",
    status_code=201,
    response_model=ApiResponse[BatchUploadResult],
    responses={**UPLOAD_RESPONSES, **CATEGORY_CONFLICT},
    summary="Create a category with up to 10 images",
)
async def upload_batch_with_category(
    images: Optional[List[UploadFile]] = File(default=None, description="Up to 10 image files"),
    category_name: str = Form(alias="categoryName", description="2-50 characters after trimming"),
    category_description: Optional[str] = Form(default=None, alias="categoryDescription"),
    description: Optional[str] = Form(default=None, description="Shared by every image"),
    tags: Optional[str] = Form(default=None, description="Comma-separated, shared by every image"),
    is_featured: bool = Form(default=False, alias="isFeatured"),
    service: ImageService = Depends(get_image_service),
    file_service: FileService = Depends(get_file_service),
) -> ApiResponse[BatchUploadResult]:
    name, category_text = _category_fields(category_name, category_description)
    files = await _read_batch(images, file_service)
    batch = [
        (content, _metadata(upload, _batch_title(upload), description, tags, is_featured))
        for upload, content in files
    ]
    stored, category = await service.upload_many_with_new_category(batch, name, category_text)
    return ApiResponse(
        message="Category and images created successfully",
        data=BatchUploadResult(
            category=CategoryResponse.model_validate(category),
            images=_many(stored),
            total_images=len(stored),
        ),
    )


# ── Listings ──────────────────────────────────────────────────────────────


@router.get(
    "",
    response_model=PaginatedResponse[ImageResponse],
    responses=BAD_REQUEST,
    summary="List images with filters and pagination",
)
async def list_images(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100, description="Items per page (max 100)"),
    sort_by: SortField = Query(default="createdAt", alias="sortBy"),
    sort_order: SortOrder = Query(default="desc", alias="sortOrder"),
    category: Optional[str] = Query(default=None, pattern=OBJECT_ID_PATTERN),
    featured: Optional[bool] = Query(default=None),
    search: Optional[str] = Query(default=None, min_length=1, max_length=100),
    service: ImageService = Depends(get_image_service),
) -> PaginatedResponse[ImageResponse]:
    images, pagination = await service.list(
        ImageListOptions(
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
            category=category,
            featured=featured,
            search=search,
        )
    )
    return PaginatedResponse(
        message="Images retrieved successfully",
        data=_many(images),
        pagination=pagination,
    )


@router.get(
    "/homepage",
    response_model=ApiResponse[List[HomepageSection]],
    summary="Newest images of every category",
    description="Up to 20 newest images per active category, categories in name order.",
)
async def homepage(
    service: ImageService = Depends(get_image_service),
) -> ApiResponse[List[HomepageSection]]:
    sections = await service.homepage()
    return ApiResponse(message="Homepage data retrieved successfully", data=sections)


@router.get(
    "/featured",
    response_model=ApiResponse[List[ImageResponse]],
    responses=BAD_REQUEST,
    summary="Featured images, newest first",
)
async def featured_images(
    limit: int = Query(default=20, ge=1, le=100),
    service: ImageService = Depends(get_image_service),
) -> ApiResponse[List[ImageResponse]]:
    images = await service.featured(limit)
    return ApiResponse(message="Featured images retrieved successfully", data=_many(images))


@router.get(
    "/category/{name}",
    response_model=ApiResponse[List[ImageResponse]],
    responses=BAD_REQUEST,
    summary="Images of categories whose name contains the given text",
)
async def images_by_category(
    name: str = Path(min_length=1, max_length=50),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    service: ImageService = Depends(get_image_service),
) -> ApiResponse[List[ImageResponse]]:
    images = await service.get_by_category_name(name, limit)
    return ApiResponse(message="Images retrieved successfully", data=_many(images))


@router.get(
    "/search",
    response_model=PaginatedResponse[ImageResponse],
    responses=BAD_REQUEST,
    summary="Search images by title, description or tags",
)
async def search_images(
    q: str = Query(min_length=1, max_length=100, description="Case-insensitive search term"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    sort_by: SortField = Query(default="createdAt", alias="sortBy"),
    sort_order: SortOrder = Query(default="desc", alias="sortOrder"),
    category: Optional[str] = Query(default=None, pattern=OBJECT_ID_PATTERN),
    featured: Optional[bool] = Query(default=None),
    service: ImageService = Depends(get_image_service),
) -> PaginatedResponse[ImageResponse]:
    images, pagination = await service.search(
        q,
        ImageListOptions(
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
            category=category,
            featured=featured,
        ),
    )
    return PaginatedResponse(
        message="Image search completed successfully",
        data=_many(images),
        pagination=pagination,
    )


@router.get(
    "/stats",
    response_model=ApiResponse[ImageStats],
    summary="Image statistics",
)
async def image_stats(
    service: ImageService = Depends(get_image_service),
) -> ApiResponse[ImageStats]:
    stats = await service.stats()
    return ApiResponse(message="Image statistics retrieved successfully", data=stats)


# ── Single image ──────────────────────────────────────────────────────────


@router.get(
    "/{image_id}",
    response_model=ApiResponse[ImageResponse],
    responses={**BAD_REQUEST, **NOT_FOUND},
    summary="Get an image by id",
    description="Each successful call increments the image's view count.",
)
async def get_image(
    image_id: ImageId,
    service: ImageService = Depends(get_image_service),
) -> ApiResponse[ImageResponse]:
    image = await service.get_by_id(image_id)
    return ApiResponse(message="Image retrieved successfully", data=_one(image))


@router.patch(
    "/{image_id}",
    response_model=ApiResponse[ImageResponse],
    responses={**BAD_REQUEST, **NOT_FOUND},
    summary="Update an image",
    description=(
        "Partial update of title, description, category, tags and isFeatured. "
        "Moving an image to another category requires that category to exist."
    ),
)
async def update_image(
    body: ImageUpdate,
    image_id: ImageId,
    service: ImageService = Depends(get_image_service),
) -> ApiResponse[ImageResponse]:
    image = await service.update(image_id, body.model_dump(exclude_unset=True))
    return ApiResponse(message="Image updated successfully", data=_one(image))


@router.delete(
    "/{image_id}",
    response_model=ApiResponse[ImageDeleteResult],
    responses={
        **BAD_REQUEST,
        **NOT_FOUND,
        500: {"description": "Image hosting service failure", "model": ErrorResponse},
    },
    summary="Delete an image and its remote asset",
)
async def delete_image(
    image_id: ImageId,
    service: ImageService = Depends(get_image_service),
) -> ApiResponse[ImageDeleteResult]:
    result = await service.delete(image_id)
    return ApiResponse(message="Image deleted successfully", data=result)
