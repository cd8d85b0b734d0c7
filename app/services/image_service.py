"""
Venue Gallery Backend — Image Service
======================================

What:  Image lifecycle and read models: upload orchestration, homepage
       sections, filtered/paginated listing, search, featured images,
       statistics, partial updates and deletion.
How:   SQL through StorageGateway, remote bytes through AssetHostGateway,
       category checks and creation through CategoryService.
Who:   Called by the /api/images route handlers.

Upload flow (POST /api/images):
    ┌──────────────┐   ┌──────────────┐   ┌──────────────┐   ┌──────────────┐
    │ Verify       │──▶│ Upload bytes │──▶│ Insert image │──▶│ image_count  │
    │ category     │   │ to asset host│   │ row          │   │ += 1 (atomic)│
    └──────────────┘   └──────────────┘   └──────────────┘   └──────────────┘

    On failure at any step:
    - Category missing → NotFoundError, nothing is sent to the asset host
    - Upload fails → AssetHostError, nothing is written locally
    - Insert / counter update fails → the just-uploaded asset is deleted
      best-effort and the original error propagates

Batch uploads (POST /api/images/batch):
    Up to MAX_BATCH_FILES files go through the same flow one by one. A
    failure discards the assets already uploaded for the batch, and the
    request transaction drops their rows.

Counter consistency:
    image_count moves only through single-statement increments. The
    check-then-write sequences here are not serialized across requests;
    CategoryService.reconcile_image_count() repairs any drift.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import case, func, or_, select

from app.exceptions import AssetHostError, GalleryError, NotFoundError, ValidationError
from app.models import Category, Image
from app.schemas.category import CategorySummary
from app.schemas.common import Pagination
from app.schemas.image import (
    HomepageImage,
    HomepageSection,
    ImageDeleteResult,
    ImageListOptions,
    ImageMetadata,
    ImageStats,
)
from app.services.asset_host import AssetHostGateway, UploadedAsset
from app.services.category_service import CategoryService
from app.services.storage_gateway import LIKE_ESCAPE, StorageGateway, contains_pattern

logger = logging.getLogger(__name__)

HOMEPAGE_IMAGES_PER_CATEGORY = 20
DEFAULT_FEATURED_LIMIT = 20
MAX_BATCH_FILES = 10

# API sort keys → columns
SORT_COLUMNS = {
    "createdAt": Image.created_at,
    "title": Image.title,
    "viewCount": Image.view_count,
    "updatedAt": Image.updated_at,
}


def check_batch_size(count: int) -> None:
    """Raises ValidationError unless 1 <= count <= MAX_BATCH_FILES."""
    if count == 0:
        raise ValidationError(message="At least one image is required", field="images")
    if count > MAX_BATCH_FILES:
        raise ValidationError(
            message=f"Maximum {MAX_BATCH_FILES} images allowed",
            field="images",
            context={"count": count},
        )


class ImageService:
    """
    Business logic for images.

    Args:
        storage: request-scoped StorageGateway
        asset_host: remote image store
        categories: CategoryService sharing the same storage gateway
        max_size: (width, height) bound applied by the host on upload
        thumbnail_size: (width, height) of the derived thumbnail
    """

    def __init__(
        self,
        storage: StorageGateway,
        asset_host: AssetHostGateway,
        categories: CategoryService,
        max_size: Tuple[int, int] = (800, 600),
        thumbnail_size: Tuple[int, int] = (300, 200),
    ):
        self.storage = storage
        self.asset_host = asset_host
        self.categories = categories
        self.max_size = max_size
        self.thumbnail_size = thumbnail_size

    async def _load(self, image_id: str) -> Image:
        image = await self.storage.get(Image, image_id)
        if image is None:
            raise NotFoundError(resource="image", resource_id=image_id)
        return image

    # ── Upload ────────────────────────────────────────────────────────────

    def _upload_transformation(self) -> list:
        width, height = self.max_size
        return [
            {"quality": "auto", "fetch_format": "auto"},
            {"width": width, "height": height, "crop": "limit"},
        ]

    def _thumbnail_url(self, asset: UploadedAsset) -> str:
        width, height = self.thumbnail_size
        return self.asset_host.build_url(
            asset.identifier, width=width, height=height, crop="fill", quality="auto"
        )

    async def upload(self, content: bytes, metadata: ImageMetadata, category_id: str) -> Image:
        """
        Store an uploaded picture in a category.

        Raises:
            NotFoundError: the category does not exist (no remote call issued)
            AssetHostError: the asset host rejected the upload
            ConflictError / DatabaseError: the row could not be written
        """
        category = await self.categories.get_by_id(category_id)

        asset = await self.asset_host.upload(
            content,
            folder=self.asset_host.folder_for(category.slug),
            transformation=self._upload_transformation(),
        )

        image = Image(
            title=metadata.title,
            description=metadata.description,
            category_id=category.id,
            asset_id=asset.identifier,
            image_url=asset.url,
            thumbnail_url=self._thumbnail_url(asset),
            original_file_name=metadata.original_file_name,
            file_size=asset.bytes,
            mime_type=asset.format,
            width=asset.width,
            height=asset.height,
            tags=list(metadata.tags),
            is_active=True,
            is_featured=metadata.is_featured,
            view_count=0,
        )

        try:
            await self.storage.insert(image)
            await self.storage.increment(Category, category.id, "image_count", 1)
        except GalleryError:
            await self._discard_orphan(asset.identifier)
            raise

        logger.info("Image uploaded: '%s' (%s) into %s", image.title, image.id, category.name)
        return image

    async def _discard_orphan(self, identifier: str) -> None:
        try:
            await self.asset_host.delete(identifier)
        except AssetHostError as e:
            logger.warning("Orphaned remote asset %s could not be removed: %s", identifier, e.message)

    async def upload_with_new_category(
        self,
        content: bytes,
        metadata: ImageMetadata,
        category_name: str,
        category_description: Optional[str] = None,
    ) -> Tuple[Image, Category]:
        """Create a category, then upload into it. Returns (image, refreshed category)."""
        category = await self.categories.create(category_name, category_description)
        image = await self.upload(content, metadata, category.id)
        await self.storage.refresh(category)
        return image, category

    # ── Batch upload ──────────────────────────────────────────────────────

    async def upload_many(
        self,
        files: Sequence[Tuple[bytes, ImageMetadata]],
        category_id: str,
    ) -> Tuple[List[Image], Category]:
        """
        Upload up to MAX_BATCH_FILES pictures into one category.

        Files are uploaded one after another. The batch is all or nothing:
        when one file fails, the assets already uploaded for this batch are
        deleted best-effort and the error propagates, so the request
        transaction rolls back their rows and counter increments.

        Returns:
            (images in upload order, refreshed category)

        Raises:
            ValidationError: empty batch or more than MAX_BATCH_FILES files
            NotFoundError: the category does not exist (no remote call issued)
            AssetHostError / ConflictError / DatabaseError: from the failing file
        """
        check_batch_size(len(files))
        category = await self.categories.get_by_id(category_id)

        images: List[Image] = []
        try:
            for content, metadata in files:
                images.append(await self.upload(content, metadata, category.id))
        except GalleryError:
            logger.warning(
                "Batch upload into %s failed after %d of %d files; discarding uploaded assets",
                category.id, len(images), len(files),
            )
            for image in images:
                await self._discard_orphan(image.asset_id)
            raise

        await self.storage.refresh(category)
        logger.info("Batch of %d images uploaded into %s", len(images), category.name)
        return images, category

    async def upload_many_with_new_category(
        self,
        files: Sequence[Tuple[bytes, ImageMetadata]],
        category_name: str,
        category_description: Optional[str] = None,
    ) -> Tuple[List[Image], Category]:
        """Create a category, then upload a batch into it."""
        check_batch_size(len(files))
        category = await self.categories.create(category_name, category_description)
        return await self.upload_many(files, category.id)

    # ── Reads ─────────────────────────────────────────────────────────────

    async def homepage(self) -> List[HomepageSection]:
        """
        Newest images of every active category, grouped by category.

        Categories are queried one after another; the session is not safe
        for concurrent use.
        """
        sections = []
        for category in await self.categories.list():
            images = await self.storage.find(
                Image,
                Image.category_id == category.id,
                Image.is_active.is_(True),
                order_by=(Image.created_at.desc(), Image.id.desc()),
                limit=HOMEPAGE_IMAGES_PER_CATEGORY,
            )
            sections.append(
                HomepageSection(
                    category=CategorySummary.model_validate(category),
                    images=[HomepageImage.model_validate(image) for image in images],
                )
            )
        return sections

    async def get_by_category_name(self, name: str, limit: Optional[int] = None) -> List[Image]:
        return await self.storage.find(
            Image,
            Image.is_active.is_(True),
            Category.is_active.is_(True),
            Category.name.ilike(contains_pattern(name.strip()), escape=LIKE_ESCAPE),
            join=(Category, Image.category_id == Category.id),
            order_by=(Image.created_at.desc(), Image.id.desc()),
            limit=limit,
        )

    async def get_by_id(self, image_id: str) -> Image:
        """Fetch one image and count the view."""
        image = await self._load(image_id)
        await self.storage.increment(Image, image.id, "view_count", 1)
        await self.storage.refresh(image)
        return image

    def _list_criteria(self, options: ImageListOptions) -> list:
        criteria = [Image.is_active.is_(True)]
        if options.category:
            criteria.append(Image.category_id == options.category)
        if options.featured is not None:
            criteria.append(Image.is_featured.is_(options.featured))
        if options.search:
            pattern = contains_pattern(options.search.strip())
            # Tags match element by element, never across the serialized array
            tag = self.storage.json_elements(Image.tags)
            criteria.append(
                or_(
                    Image.title.ilike(pattern, escape=LIKE_ESCAPE),
                    Image.description.ilike(pattern, escape=LIKE_ESCAPE),
                    select(tag.c.value).where(tag.c.value.ilike(pattern, escape=LIKE_ESCAPE)).exists(),
                )
            )
        return criteria

    async def list(self, options: Optional[ImageListOptions] = None) -> Tuple[List[Image], Pagination]:
        """
        One page of active images plus pagination metadata.

        ``limit`` bounds (1-100) are enforced by the HTTP layer.
        """
        options = options or ImageListOptions()
        criteria = self._list_criteria(options)

        column = SORT_COLUMNS.get(options.sort_by, Image.created_at)
        if options.sort_order == "asc":
            ordering = (column.asc(), Image.id.asc())
        else:
            ordering = (column.desc(), Image.id.desc())

        total = await self.storage.count(Image, *criteria)
        images = await self.storage.find(
            Image,
            *criteria,
            order_by=ordering,
            offset=(options.page - 1) * options.limit,
            limit=options.limit,
        )
        return images, Pagination.build(options.page, options.limit, total)

    async def search(
        self, term: str, options: Optional[ImageListOptions] = None
    ) -> Tuple[List[Image], Pagination]:
        options = options or ImageListOptions()
        options.search = term
        return await self.list(options)

    async def featured(self, limit: int = DEFAULT_FEATURED_LIMIT) -> List[Image]:
        return await self.storage.find(
            Image,
            Image.is_active.is_(True),
            Image.is_featured.is_(True),
            order_by=(Image.created_at.desc(), Image.id.desc()),
            limit=limit,
        )

    async def stats(self) -> ImageStats:
        totals = await self.storage.aggregate(
            Image,
            Image.is_active.is_(True),
            total_images=func.count(Image.id),
            total_views=func.sum(Image.view_count),
            average_views=func.avg(Image.view_count),
            featured_images=func.sum(case((Image.is_featured.is_(True), 1), else_=0)),
            total_file_size=func.sum(Image.file_size),
        )
        return ImageStats(
            total_images=int(totals["total_images"]),
            total_views=int(totals["total_views"]),
            average_views=round(float(totals["average_views"]), 2),
            featured_images=int(totals["featured_images"]),
            total_file_size=int(totals["total_file_size"]),
        )

    # ── Update ────────────────────────────────────────────────────────────

    async def update(self, image_id: str, changes: dict) -> Image:
        """
        Apply a partial update.

        ``changes`` holds only the fields present in the request, keyed by
        attribute name (title, description, category, tags, is_featured).
        Moving the image to another category verifies the target and moves
        one unit of image_count from the old category to the new one.

        Raises:
            NotFoundError: unknown image, or unknown target category
        """
        image = await self._load(image_id)

        target_id = changes.get("category")
        if target_id and target_id != image.category_id:
            target = await self.categories.get_by_id(target_id)
            previous_id = image.category_id
            image.category_id = target.id
            if image.is_active:
                await self.storage.increment(Category, previous_id, "image_count", -1, floor=0)
                await self.storage.increment(Category, target.id, "image_count", 1)
            logger.info("Image %s moved from category %s to %s", image.id, previous_id, target.id)

        # title and is_featured are NOT NULL; an explicit null leaves them as they are
        if changes.get("title") is not None:
            image.title = changes["title"]
        if changes.get("is_featured") is not None:
            image.is_featured = changes["is_featured"]
        if "description" in changes:
            image.description = changes["description"]
        if "tags" in changes:
            image.tags = list(changes["tags"] or [])

        await self.storage.flush()
        logger.info("Image updated: %s", image.id)
        return image

    # ── Delete ────────────────────────────────────────────────────────────

    async def delete(self, image_id: str) -> ImageDeleteResult:
        """
        Delete the remote asset, then the row, then decrement the count.

        Raises:
            NotFoundError: unknown image
            AssetHostError: remote deletion failed; the row is left in place
        """
        image = await self._load(image_id)

        await self.asset_host.delete(image.asset_id)

        await self.storage.delete(image)
        if image.is_active:
            await self.storage.increment(Category, image.category_id, "image_count", -1, floor=0)

        logger.info("Image deleted: '%s' (%s)", image.title, image.id)
        return ImageDeleteResult(title=image.title, asset_id=image.asset_id)
