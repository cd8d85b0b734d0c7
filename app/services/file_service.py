"""
Venue Gallery Backend — Upload Validation Service
==================================================

What:  Validates an uploaded image before anything is sent to the asset host.
How:   Checks, cheapest first: presence of a file, extension, declared MIME
       type, reported size, then the bytes themselves (actual size,
       emptiness, content type detected by libmagic).
Who:   Called by the image upload routes before ImageService.upload().
When:  Once per multipart upload; a rejected file never leaves the process.

Validation order:
    Before reading the body (check_before_read):
    1. Extension check: O(1), no file reading needed
    2. Declared MIME type: Content-Type against the allow-list
    3. Reported size: the multipart part's size, so oversized files are
       rejected without being read into memory

    After reading (validate_content):
    4. Actual size and emptiness
    5. Detected MIME type: python-magic inspects the header bytes

    Why both declared AND detected type:
        - Extension and Content-Type are chosen by the client
          (rename menu.pdf → menu.jpg and both say "image/jpeg")
        - Magic bytes are not: a JPEG starts with FF D8 FF, a PNG with 89 50 4E 47
        - The detected type must also agree with the extension: a .jpg file
          carrying PNG bytes is rejected
"""

import logging
from pathlib import Path
from typing import Iterable, Optional

import magic

from app.exceptions import GalleryError, ValidationError

logger = logging.getLogger(__name__)

# Extensions accepted for each allowed MIME type
MIME_EXTENSIONS = {
    "image/jpeg": {".jpg", ".jpeg"},
    "image/jpg": {".jpg", ".jpeg"},
    "image/png": {".png"},
    "image/webp": {".webp"},
    "image/gif": {".gif"},
}


class FileService:
    """
    Upload validation against a configured MIME allow-list and size limit.

    Args:
        allowed_types: MIME types accepted (e.g. settings.allowed_file_types_list)
        max_file_size: maximum size in bytes
    """

    def __init__(self, allowed_types: Iterable[str], max_file_size: int):
        self.allowed_types = [t.lower() for t in allowed_types]
        self.max_file_size = max_file_size

    @property
    def allowed_extensions(self) -> set:
        extensions = set()
        for mime in self.allowed_types:
            extensions |= MIME_EXTENSIONS.get(mime, set())
        return extensions

    def _too_large(self, **context) -> ValidationError:
        max_mb = self.max_file_size / (1024 * 1024)
        return ValidationError(
            message=f"File size too large. Maximum size: {max_mb:.0f}MB",
            field="image",
            context=context,
        )

    def validate_extension(self, filename: str) -> str:
        """
        Returns: Normalized extension (lowercase with dot).
        Raises:  ValidationError if extension is not allowed.
        """
        ext = Path(filename).suffix.lower()
        if ext not in self.allowed_extensions:
            raise ValidationError(
                message=(
                    f"File type '{ext or filename}' is not supported. "
                    f"Allowed types: {', '.join(sorted(self.allowed_extensions))}"
                ),
                field="image",
                context={"extension": ext},
            )
        return ext

    def validate_mime_type(self, content_type: Optional[str]) -> str:
        mime_type = (content_type or "").split(";")[0].strip().lower()
        if mime_type not in self.allowed_types:
            raise ValidationError(
                message=f"Invalid file type. Allowed types: {', '.join(self.allowed_types)}",
                field="image",
                context={"declared_mime": mime_type},
            )
        return mime_type

    def detect_mime_type(self, content: bytes, filename: str) -> str:
        """
        Determine the real type of ``content`` from its magic bytes.

        What:    libmagic (via python-magic) matches the header bytes against
                 known file signatures.
        Why:     The declared type and the extension are client-controlled.

        Returns:
            Detected MIME type (e.g. "image/jpeg")

        Raises:
            ValidationError: the content is not an allowed image, or its type
                             does not match the file extension
            GalleryError:    libmagic could not inspect the buffer
        """
        try:
            detected = magic.from_buffer(content, mime=True)
        except magic.MagicException as e:
            logger.error("MIME type detection failed for %s: %s", filename, str(e))
            raise GalleryError(
                message="Could not verify file type. Please try again.",
                context={"filename": filename, "error": str(e)},
            ) from e

        ext = Path(filename).suffix.lower()
        if detected not in self.allowed_types or ext not in MIME_EXTENSIONS.get(detected, set()):
            raise ValidationError(
                message=(
                    f"File content type '{detected}' is not supported. "
                    "The file must be a valid image matching its extension."
                ),
                field="image",
                context={"detected_mime": detected, "extension": ext},
            )
        return detected

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Reject files above the configured maximum and empty files.

        Args:
            content_length: Size reported by the client (may be None or inaccurate)
            actual_size: Actual byte count of the uploaded file
        """
        if content_length and content_length > self.max_file_size:
            raise self._too_large(reported_size=content_length)

        if actual_size > self.max_file_size:
            raise self._too_large(actual_size=actual_size)

        if actual_size == 0:
            raise ValidationError(message="Uploaded file is empty", field="image")

    def check_before_read(
        self,
        filename: Optional[str],
        content_type: Optional[str],
        content_length: Optional[int] = None,
    ) -> None:
        """
        Checks that need no file content: presence, extension, declared type
        and the reported size.
        """
        if not filename:
            raise ValidationError(message="No file uploaded", field="image")

        self.validate_extension(filename)
        self.validate_mime_type(content_type)
        if content_length and content_length > self.max_file_size:
            raise self._too_large(reported_size=content_length)

    def validate_content(self, filename: str, content: bytes) -> str:
        """Actual size, emptiness and detected type of the bytes read. Returns the detected type."""
        self.validate_size(None, len(content))
        return self.detect_mime_type(content, filename)

    def validate_upload(
        self,
        filename: Optional[str],
        content_type: Optional[str],
        content: bytes,
        content_length: Optional[int] = None,
    ) -> str:
        """
        Complete validation pipeline for one uploaded image.

        Returns:
            The MIME type detected from the content.
        Raises:
            ValidationError describing the first failed check.
        """
        self.check_before_read(filename, content_type, content_length)
        mime_type = self.validate_content(filename, content)

        logger.debug("Upload accepted: %s (%s, %d bytes)", filename, mime_type, len(content))
        return mime_type
