"""
Venue Gallery Backend — Dependency Wiring
==========================================

What:  FastAPI dependencies that assemble gateways and services per request.
How:   The asset host gateway is built once from settings and cached; the
       storage gateway wraps the request-scoped session; services receive
       both through their constructors.
Who:   Used by route handlers via Depends(); tests replace get_asset_host
       and get_db_session through app.dependency_overrides.

Dependency graph (one request):
    get_db_session ──▶ get_storage ──┬──▶ get_category_service ──▶ get_image_service
    get_asset_host ──────────────────┘                               ▲
                   └─────────────────────────────────────────────────┘
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db_session
from app.services.asset_host import AssetHostGateway
from app.services.category_service import CategoryService
from app.services.file_service import FileService
from app.services.image_service import ImageService
from app.services.storage_gateway import StorageGateway


@lru_cache(maxsize=1)
def get_asset_host() -> AssetHostGateway:
    return AssetHostGateway(
        cloud_name=settings.cloudinary_cloud_name,
        api_key=settings.cloudinary_api_key,
        api_secret=settings.cloudinary_api_secret,
        root_folder=settings.asset_root_folder,
    )


@lru_cache(maxsize=1)
def get_file_service() -> FileService:
    return FileService(
        allowed_types=settings.allowed_file_types_list,
        max_file_size=settings.max_file_size,
    )


def get_storage(db: AsyncSession = Depends(get_db_session)) -> StorageGateway:
    return StorageGateway(db)


def get_category_service(
    storage: StorageGateway = Depends(get_storage),
    asset_host: AssetHostGateway = Depends(get_asset_host),
) -> CategoryService:
    return CategoryService(storage, asset_host)


def get_image_service(
    storage: StorageGateway = Depends(get_storage),
    asset_host: AssetHostGateway = Depends(get_asset_host),
    categories: CategoryService = Depends(get_category_service),
) -> ImageService:
    return ImageService(
        storage,
        asset_host,
        categories,
        max_size=(settings.asset_max_width, settings.asset_max_height),
        thumbnail_size=(settings.thumbnail_width, settings.thumbnail_height),
    )
