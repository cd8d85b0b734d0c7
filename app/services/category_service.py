"""
Venue Gallery Backend — Category Service
=========================================

What:  Category lifecycle: create, list, lookup (id, name, slug), rename,
       search, statistics, cascade delete and image-count repair.
How:   Issues all SQL through a StorageGateway and all remote calls through
       an AssetHostGateway; both are handed in by the composition layer.
Who:   Called by the /api/categories route handlers and by ImageService
       (upload into a brand-new category).

Cascade delete (DELETE /api/categories/{id}):
    ┌──────────────┐   ┌────────────────────┐   ┌──────────────┐   ┌──────────────┐
    │ Enumerate    │──▶│ Delete remote      │──▶│ Delete image │──▶│ Delete remote│
    │ images       │   │ assets (parallel,  │   │ rows, then   │   │ folder       │
    │              │   │ best-effort)       │   │ category row │   │ (best-effort)│
    └──────────────┘   └────────────────────┘   └──────────────┘   └──────────────┘

    Row deletions start only after every remote attempt has settled. The
    image rows and the category row are removed in the request transaction,
    so a failure there rolls both back together.
"""

import logging
from typing import List, Optional

from sqlalchemy import func, or_

from app.exceptions import AssetHostError, ConflictError, NotFoundError
from app.models import Category, Image
from app.models.category import normalize_category_name, slugify
from app.schemas.category import CategoryDeleteResult, CategoryStats
from app.services.asset_host import AssetHostGateway
from app.services.storage_gateway import LIKE_ESCAPE, StorageGateway, contains_pattern

logger = logging.getLogger(__name__)

DUPLICATE_NAME_MESSAGE = "Category name already exists"


class CategoryService:
    """
    Business logic for categories.

    Args:
        storage: request-scoped StorageGateway
        asset_host: remote image store used by the cascade delete
    """

    def __init__(self, storage: StorageGateway, asset_host: AssetHostGateway):
        self.storage = storage
        self.asset_host = asset_host

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _load(self, category_id: str) -> Category:
        """Fetch a category regardless of its active flag."""
        category = await self.storage.get(Category, category_id)
        if category is None:
            raise NotFoundError(resource="category", resource_id=category_id)
        return category

    async def _ensure_unique(self, name: str, slug: str, exclude_id: Optional[str] = None) -> None:
        criteria = [or_(Category.name == name, Category.slug == slug)]
        if exclude_id:
            criteria.append(Category.id != exclude_id)
        existing = await self.storage.find_one(Category, *criteria)
        if existing is not None:
            raise ConflictError(
                message=DUPLICATE_NAME_MESSAGE,
                context={"name": name, "existing_id": existing.id},
            )

    # ── Create / read ─────────────────────────────────────────────────────

    async def create(self, name: str, description: Optional[str] = None) -> Category:
        """
        Create an active category with an empty image count.

        Raises:
            ConflictError: the normalized name, or a name with the same slug,
                           is already taken
        """
        normalized = normalize_category_name(name)
        slug = slugify(normalized)
        await self._ensure_unique(normalized, slug)

        category = Category(
            name=normalized,
            slug=slug,
            description=description,
            is_active=True,
            image_count=0,
        )
        # The unique constraints still guard against a concurrent insert
        # slipping in between the check above and this flush.
        try:
            await self.storage.insert(category)
        except ConflictError as e:
            raise ConflictError(message=DUPLICATE_NAME_MESSAGE, context=e.context) from e

        logger.info("Category created: %s (%s)", category.name, category.id)
        return category

    async def list(self) -> List[Category]:
        return await self.storage.find(
            Category,
            Category.is_active.is_(True),
            order_by=(Category.name.asc(),),
        )

    async def get_by_id(self, category_id: str) -> Category:
        category = await self.storage.find_one(
            Category,
            Category.id == category_id,
            Category.is_active.is_(True),
        )
        if category is None:
            raise NotFoundError(resource="category", resource_id=category_id)
        return category

    async def get_by_name(self, name: str) -> Category:
        """First active category (by name) whose name contains ``name``, case-insensitively."""
        category = await self.storage.find_one(
            Category,
            Category.is_active.is_(True),
            Category.name.ilike(contains_pattern(name.strip()), escape=LIKE_ESCAPE),
            order_by=(Category.name.asc(),),
        )
        if category is None:
            raise NotFoundError(resource="category", context={"name": name})
        return category

    async def get_by_slug(self, slug: str) -> Category:
        category = await self.storage.find_one(
            Category,
            Category.is_active.is_(True),
            Category.slug == slug.strip().lower(),
        )
        if category is None:
            raise NotFoundError(resource="category", context={"slug": slug})
        return category

    async def search(self, term: str) -> List[Category]:
        pattern = contains_pattern(term.strip())
        return await self.storage.find(
            Category,
            Category.is_active.is_(True),
            or_(
                Category.name.ilike(pattern, escape=LIKE_ESCAPE),
                Category.description.ilike(pattern, escape=LIKE_ESCAPE),
            ),
            order_by=(Category.name.asc(),),
        )

    async def stats(self) -> CategoryStats:
        totals = await self.storage.aggregate(
            Category,
            Category.is_active.is_(True),
            total_categories=func.count(Category.id),
            total_images=func.sum(Category.image_count),
            average=func.avg(Category.image_count),
        )
        return CategoryStats(
            total_categories=int(totals["total_categories"]),
            total_images=int(totals["total_images"]),
            average_images_per_category=round(float(totals["average"]), 2),
        )

    # ── Update ────────────────────────────────────────────────────────────

    async def update(
        self,
        category_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        fields_set: Optional[set] = None,
    ) -> Category:
        """
        Apply a partial update.

        ``fields_set`` names the fields present in the request body, so an
        explicit ``"description": null`` clears the description while an
        omitted one leaves it untouched. Without it, only non-None values
        are applied.

        Raises:
            NotFoundError: no category with this id
            ConflictError: the new name collides with another category
        """
        category = await self._load(category_id)
        provided = fields_set if fields_set is not None else {
            key for key, value in (("name", name), ("description", description)) if value is not None
        }

        if "name" in provided and name is not None:
            normalized = normalize_category_name(name)
            if normalized != category.name:
                await self._ensure_unique(normalized, slugify(normalized), exclude_id=category.id)
                category.rename(normalized)

        if "description" in provided:
            category.description = description

        try:
            await self.storage.flush()
        except ConflictError as e:
            raise ConflictError(message=DUPLICATE_NAME_MESSAGE, context=e.context) from e

        logger.info("Category updated: %s (%s)", category.name, category.id)
        return category

    # ── Delete (cascade) ──────────────────────────────────────────────────

    def _asset_folders(self, category: Category, images: List[Image]) -> List[str]:
        """
        Remote folders holding the category's assets.

        Images keep the folder they were uploaded into, so a category renamed
        after its first uploads has assets under more than one slug.
        """
        folders = [self.asset_host.folder_for(category.slug)]
        folders += [image.asset_id.rsplit("/", 1)[0] for image in images if "/" in image.asset_id]
        return list(dict.fromkeys(folders))

    async def delete(self, category_id: str) -> CategoryDeleteResult:
        """
        Delete a category, its images and their remote assets.

        Remote cleanup is best-effort: identifiers whose deletion failed are
        reported in ``failed_asset_deletions`` and the local rows are removed
        anyway.

        Raises:
            NotFoundError: no category with this id
        """
        category = await self._load(category_id)
        images = await self.storage.find(Image, Image.category_id == category.id)

        outcomes = await self.asset_host.delete_many(image.asset_id for image in images)
        failed = [outcome.identifier for outcome in outcomes if not outcome.succeeded]
        if failed:
            logger.warning(
                "Category %s: %d of %d remote assets could not be deleted",
                category.id, len(failed), len(outcomes),
            )

        deleted_images = await self.storage.delete_where(Image, Image.category_id == category.id)
        await self.storage.delete(category)

        for folder in self._asset_folders(category, images):
            try:
                await self.asset_host.delete_folder(folder)
            except AssetHostError as e:
                logger.warning("Could not remove asset folder %s: %s", folder, e.message)

        logger.info("Category deleted: %s with %d images", category.name, deleted_images)
        return CategoryDeleteResult(
            category=category.name,
            deleted_images_count=deleted_images,
            failed_asset_deletions=failed,
        )

    # ── Counter repair ────────────────────────────────────────────────────

    async def reconcile_image_count(self, category_id: str) -> Category:
        """Recount the category's active images and store the true value."""
        category = await self._load(category_id)
        actual = await self.storage.count(
            Image,
            Image.category_id == category.id,
            Image.is_active.is_(True),
        )
        if actual != category.image_count:
            logger.warning(
                "Category %s image_count drifted: stored=%d actual=%d",
                category.id, category.image_count, actual,
            )
        await self.storage.update_fields(Category, category.id, image_count=actual)
        await self.storage.refresh(category)
        return category
