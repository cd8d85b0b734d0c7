"""
Venue Gallery Backend — Asset Host Gateway (Cloudinary)
========================================================

What:  Uploads image bytes to Cloudinary, deletes remote assets and folders,
       and builds derived (resized/cropped) URLs.
How:   Wraps the Cloudinary Python SDK. Credentials are passed on every call
       from the gateway instance; the SDK's process-global configuration is
       never touched. The SDK is synchronous, so network calls run in a
       worker thread via asyncio.to_thread to keep the event loop free.
Who:   Constructed once from settings by app/dependencies.py; used by the
       Category and Image services.

Failure semantics:
    upload / delete / delete_folder raise AssetHostError on any failure.
    delete_many never raises: it returns one AssetDeletionOutcome per
    identifier so the caller decides whether partial failure matters.
    build_url is pure string construction (no network round trip).
"""

import asyncio
import io
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import cloudinary.api
import cloudinary.uploader
from cloudinary.utils import cloudinary_url

from app.exceptions import AssetHostError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedAsset:
    """What the asset host reports back for a successful upload."""

    identifier: str
    url: str
    bytes: int
    format: str
    width: int
    height: int


@dataclass(frozen=True)
class AssetDeletionOutcome:
    """Result of one remote deletion inside a batch."""

    identifier: str
    succeeded: bool
    error: Optional[str] = None


class AssetHostGateway:
    """
    Cloudinary-backed remote image storage.

    Args:
        cloud_name / api_key / api_secret: Cloudinary account credentials
        root_folder: prefix for every folder this application writes to
        secure: build https URLs
    """

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        root_folder: str = "gallery",
        secure: bool = True,
    ):
        self.cloud_name = cloud_name
        self.root_folder = root_folder.strip("/")
        self.secure = secure
        self._api_key = api_key
        self._api_secret = api_secret

    @property
    def is_configured(self) -> bool:
        return bool(self.cloud_name and self._api_key and self._api_secret)

    def _credentials(self) -> Dict[str, Any]:
        return {
            "cloud_name": self.cloud_name,
            "api_key": self._api_key,
            "api_secret": self._api_secret,
        }

    def folder_for(self, *parts: str) -> str:
        """Join path segments under the root folder: gallery/<part>/<part>."""
        return "/".join([self.root_folder, *(p.strip("/") for p in parts if p)])

    # ── Upload ────────────────────────────────────────────────────────────

    async def upload(
        self,
        content: bytes,
        folder: str,
        filename: Optional[str] = None,
        transformation: Optional[List[Dict[str, Any]]] = None,
    ) -> UploadedAsset:
        """
        Upload an image buffer into ``folder``.

        ``transformation`` is applied by Cloudinary before storing (incoming
        transformation), e.g. ``[{"width": 800, "height": 600, "crop": "limit"}]``.

        Raises:
            AssetHostError: the upload failed or the response was incomplete
        """
        options: Dict[str, Any] = {
            "folder": folder,
            "resource_type": "image",
            "use_filename": False,
            "unique_filename": True,
            **self._credentials(),
        }
        if transformation:
            options["transformation"] = transformation
        if filename:
            options["filename"] = filename

        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.upload, io.BytesIO(content), **options
            )
        except Exception as e:
            logger.error("Cloudinary upload into %s failed: %s", folder, str(e))
            raise AssetHostError(
                message="Failed to upload image to the image hosting service",
                context={"folder": folder, "error_type": type(e).__name__},
            ) from e

        try:
            asset = UploadedAsset(
                identifier=result["public_id"],
                url=result["secure_url"] if self.secure else result["url"],
                bytes=int(result.get("bytes", len(content))),
                format=result.get("format", ""),
                width=int(result.get("width", 0)),
                height=int(result.get("height", 0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Unexpected Cloudinary upload response: %r", result)
            raise AssetHostError(
                message="The image hosting service returned an unexpected response",
                context={"folder": folder},
            ) from e

        logger.info("Image uploaded to asset host: %s (%d bytes)", asset.identifier, asset.bytes)
        return asset

    # ── Delete ────────────────────────────────────────────────────────────

    async def delete(self, identifier: str) -> None:
        """
        Remove one remote asset.

        An asset the host no longer knows ("not found") counts as deleted;
        the goal state is reached either way.

        Raises:
            AssetHostError: the call failed or the host refused the deletion
        """
        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.destroy,
                identifier,
                resource_type="image",
                invalidate=True,
                **self._credentials(),
            )
        except Exception as e:
            logger.error("Cloudinary delete of %s failed: %s", identifier, str(e))
            raise AssetHostError(
                message="Failed to delete image from the image hosting service",
                context={"identifier": identifier, "error_type": type(e).__name__},
            ) from e

        outcome = (result or {}).get("result")
        if outcome == "not found":
            logger.warning("Asset %s was already absent on the asset host", identifier)
        elif outcome != "ok":
            raise AssetHostError(
                message="The image hosting service refused to delete the image",
                context={"identifier": identifier, "result": outcome},
            )
        else:
            logger.info("Asset deleted: %s", identifier)

    async def delete_many(self, identifiers: Iterable[str]) -> List[AssetDeletionOutcome]:
        """
        Delete several assets concurrently, best-effort.

        All deletions are started together and awaited until every one has
        settled; a failure never cancels the others. Returns outcomes in the
        order of ``identifiers``.
        """
        ids = list(identifiers)
        if not ids:
            return []

        results = await asyncio.gather(
            *(self.delete(identifier) for identifier in ids),
            return_exceptions=True,
        )

        outcomes: List[AssetDeletionOutcome] = []
        for identifier, result in zip(ids, results):
            if isinstance(result, BaseException):
                message = result.message if isinstance(result, AssetHostError) else str(result)
                logger.warning("Best-effort delete of asset %s failed: %s", identifier, message)
                outcomes.append(AssetDeletionOutcome(identifier, succeeded=False, error=message))
            else:
                outcomes.append(AssetDeletionOutcome(identifier, succeeded=True))
        return outcomes

    async def delete_folder(self, folder: str) -> None:
        """
        Remove an (empty) remote folder.

        Raises:
            AssetHostError: the folder could not be removed
        """
        try:
            await asyncio.to_thread(cloudinary.api.delete_folder, folder, **self._credentials())
        except Exception as e:
            raise AssetHostError(
                message="Failed to delete folder from the image hosting service",
                context={"folder": folder, "error_type": type(e).__name__},
            ) from e
        logger.info("Asset folder deleted: %s", folder)

    # ── Derived URLs ──────────────────────────────────────────────────────

    def build_url(self, identifier: str, **transform: Any) -> str:
        """
        Build a delivery URL for a transformed variant of an asset.

            build_url("gallery/hall/abc", width=300, height=200, crop="fill", quality="auto")

        Pure string construction; nothing is sent to the host.
        """
        options = {"fetch_format": "auto", "quality": "auto", **transform}
        url, _ = cloudinary_url(
            identifier,
            cloud_name=self.cloud_name,
            secure=self.secure,
            **options,
        )
        return url
