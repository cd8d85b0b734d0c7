"""
Venue Gallery Backend — Category Route Handlers
================================================

What:  /api/categories: create, list, stats, search, lookups by id, name and
       slug, partial update, cascade delete and image-count recount.
How:   Validates input with Pydantic / FastAPI parameters, delegates to
       CategoryService, wraps results in the ApiResponse envelope.
Who:   Called by the gallery admin frontend.

Route order matters: the static segments (stats, search, name/, slug/) are
declared before /{category_id} so they are never captured as an id.
"""

import logging
from typing import Annotated, List

from fastapi import APIRouter, Depends, Path, Query

from app.dependencies import get_category_service
from app.models.common import OBJECT_ID_PATTERN
from app.schemas.category import (
    CategoryCreate,
    CategoryDeleteResult,
    CategoryResponse,
    CategoryStats,
    CategoryUpdate,
)
from app.schemas.common import ApiResponse, ErrorResponse
from app.services.category_service import CategoryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/categories", tags=["Categories"])

CategoryId = Annotated[
    str, Path(pattern=OBJECT_ID_PATTERN, description="24-character hexadecimal category id")
]

NOT_FOUND = {404: {"description": "Category not found", "model": ErrorResponse}}
BAD_REQUEST = {400: {"description": "Invalid input", "model": ErrorResponse}}


def _one(category) -> CategoryResponse:
    return CategoryResponse.model_validate(category)


def _many(categories) -> List[CategoryResponse]:
    return [CategoryResponse.model_validate(category) for category in categories]


@router.post(
    "",
    status_code=201,
    response_model=ApiResponse[CategoryResponse],
    responses={
        **BAD_REQUEST,
        409: {"description": "Category name already exists", "model": ErrorResponse},
    },
    summary="Create a category",
    description="Names are trimmed and lowercased; the slug is derived from the name.",
)
async def create_category(
    body: CategoryCreate,
    service: CategoryService = Depends(get_category_service),
) -> ApiResponse[CategoryResponse]:
    category = await service.create(body.name, body.description)
    return ApiResponse(message="Category created successfully", data=_one(category))


@router.get(
    "",
    response_model=ApiResponse[List[CategoryResponse]],
    summary="List active categories",
)
async def list_categories(
    service: CategoryService = Depends(get_category_service),
) -> ApiResponse[List[CategoryResponse]]:
    categories = await service.list()
    return ApiResponse(message="Categories retrieved successfully", data=_many(categories))


@router.get(
    "/stats",
    response_model=ApiResponse[CategoryStats],
    summary="Category statistics",
)
async def category_stats(
    service: CategoryService = Depends(get_category_service),
) -> ApiResponse[CategoryStats]:
    stats = await service.stats()
    return ApiResponse(message="Category statistics retrieved successfully", data=stats)


@router.get(
    "/search",
    response_model=ApiResponse[List[CategoryResponse]],
    responses=BAD_REQUEST,
    summary="Search categories by name or description",
)
async def search_categories(
    q: str = Query(min_length=1, max_length=100, description="Case-insensitive search term"),
    service: CategoryService = Depends(get_category_service),
) -> ApiResponse[List[CategoryResponse]]:
    categories = await service.search(q)
    return ApiResponse(message="Categories search completed successfully", data=_many(categories))


@router.get(
    "/name/{name}",
    response_model=ApiResponse[CategoryResponse],
    responses=NOT_FOUND,
    summary="Find a category by (partial) name",
)
async def get_category_by_name(
    name: str = Path(min_length=1, max_length=50),
    service: CategoryService = Depends(get_category_service),
) -> ApiResponse[CategoryResponse]:
    category = await service.get_by_name(name)
    return ApiResponse(message="Category retrieved successfully", data=_one(category))


@router.get(
    "/slug/{slug}",
    response_model=ApiResponse[CategoryResponse],
    responses=NOT_FOUND,
    summary="Find a category by slug",
)
async def get_category_by_slug(
    slug: str = Path(min_length=1, max_length=60),
    service: CategoryService = Depends(get_category_service),
) -> ApiResponse[CategoryResponse]:
    category = await service.get_by_slug(slug)
    return ApiResponse(message="Category retrieved successfully", data=_one(category))


@router.get(
    "/{category_id}",
    response_model=ApiResponse[CategoryResponse],
    responses={**BAD_REQUEST, **NOT_FOUND},
    summary="Get a category by id",
)
async def get_category(
    category_id: CategoryId,
    service: CategoryService = Depends(get_category_service),
) -> ApiResponse[CategoryResponse]:
    category = await service.get_by_id(category_id)
    return ApiResponse(message="Category retrieved successfully", data=_one(category))


@router.patch(
    "/{category_id}",
    response_model=ApiResponse[CategoryResponse],
    responses={
        **BAD_REQUEST,
        **NOT_FOUND,
        409: {"description": "Category name already exists", "model": ErrorResponse},
    },
    summary="Update a category",
    description="Partial update. Renaming recomputes the slug.",
)
async def update_category(
    body: CategoryUpdate,
    category_id: CategoryId,
    service: CategoryService = Depends(get_category_service),
) -> ApiResponse[CategoryResponse]:
    category = await service.update(
        category_id,
        name=body.name,
        description=body.description,
        fields_set=body.model_fields_set,
    )
    return ApiResponse(message="Category updated successfully", data=_one(category))


@router.delete(
    "/{category_id}",
    response_model=ApiResponse[CategoryDeleteResult],
    responses={**BAD_REQUEST, **NOT_FOUND},
    summary="Delete a category and all of its images",
    description=(
        "Removes every image of the category together with its remote asset. "
        "Remote deletions are best-effort; identifiers that could not be removed "
        "are listed in failedAssetDeletions."
    ),
)
async def delete_category(
    category_id: CategoryId,
    service: CategoryService = Depends(get_category_service),
) -> ApiResponse[CategoryDeleteResult]:
    result = await service.delete(category_id)
    return ApiResponse(message="Category deleted successfully", data=result)


@router.post(
    "/{category_id}/recount",
    response_model=ApiResponse[CategoryResponse],
    responses={**BAD_REQUEST, **NOT_FOUND},
    summary="Recompute a category's image count",
    description="Repair operation: counts the category's active images and stores the result.",
)
async def recount_category_images(
    category_id: CategoryId,
    service: CategoryService = Depends(get_category_service),
) -> ApiResponse[CategoryResponse]:
    category = await service.reconcile_image_count(category_id)
    return ApiResponse(message="Category image count updated successfully", data=_one(category))
