"""
Pinpoint Backend — Image Blob Storage
======================================

What:  Writes uploaded image bytes to disk and maps images to their public URL.
How:   The request body is streamed chunk by chunk into `<id>.<ext>.part`
       with aiofiles, then renamed over `<upload_root>/<id>.<ext>`.
Who:   PUT /api/Image/{id}/blob. The upload root is served read-only at
       `serve_upload_path` by StaticFiles.

Security Model:
    1. Filename:  derived from the image id and its validated extension only;
                  no client-provided name ever reaches the file system.
    2. Size:      Content-Length is checked before reading, the running byte
                  count while reading (clients can lie about the header).
    3. Partials:  a failed or oversized upload never replaces the previous
                  blob; the `.part` file is removed.
"""

import logging
import os
from pathlib import Path
from typing import AsyncIterable, Optional

import aiofiles

from pinpoint.exceptions import FileStorageError, ValidationError
from pinpoint.models import Image

logger = logging.getLogger(__name__)


class FileService:
    """
    Owns the upload directory.

    Layout:
        upload/
        ├── 6f1c…-…-9a2e.png
        └── 0b7d…-…-41c3.jpg
    """

    def __init__(self, upload_root: str, max_upload_size: int, serve_upload_path: str = "/upload"):
        self.upload_root = Path(upload_root).resolve()
        self.max_upload_size = max_upload_size
        self.serve_upload_path = serve_upload_path.rstrip("/")

    def ensure_root(self) -> Path:
        """Create the upload directory if needed (application startup)."""
        self.upload_root.mkdir(parents=True, exist_ok=True)
        return self.upload_root

    def blob_path(self, image: Image) -> Path:
        return self.upload_root / image.blob_name

    def public_url(self, image: Image) -> str:
        return f"{self.serve_upload_path}/{image.blob_name}"

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Reject uploads above max_upload_size.

        Args:
            content_length: Content-Length header value (may be None or wrong)
            actual_size: Bytes received so far
        """
        max_mb = self.max_upload_size / (1024 * 1024)

        if content_length and content_length > self.max_upload_size:
            raise ValidationError(
                message=f"File size exceeds maximum of {max_mb:.0f}MB.",
                field="blob",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

        if actual_size > self.max_upload_size:
            raise ValidationError(
                message=f"File size ({actual_size / (1024 * 1024):.1f}MB) exceeds maximum of {max_mb:.0f}MB.",
                field="blob",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    async def store_blob(
        self,
        image: Image,
        chunks: AsyncIterable[bytes],
        content_length: Optional[int] = None,
    ) -> Path:
        """
        Stream an upload into the image's blob file.

        Returns:
            Absolute path of the stored blob.

        Raises:
            ValidationError: empty body or too large
            FileStorageError: the file system refused the write
        """
        self.validate_size(content_length, 0)

        target = self.blob_path(image)
        partial = target.with_name(target.name + ".part")
        written = 0

        try:
            self.ensure_root()
            async with aiofiles.open(partial, "wb") as f:
                async for chunk in chunks:
                    if not chunk:
                        continue
                    written += len(chunk)
                    self.validate_size(None, written)
                    await f.write(chunk)

            if written == 0:
                raise ValidationError(message="Upload body is empty", field="blob")

            os.replace(partial, target)
        except ValidationError:
            await self.cleanup_file(partial)
            raise
        except OSError as e:
            await self.cleanup_file(partial)
            logger.error("Failed to store blob at %s: %s", target, e)
            raise FileStorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"path": str(target), "os_error": str(e)},
            ) from e

        logger.info("Blob stored for image %s (%d bytes)", image.id, written)
        return target

    async def cleanup_file(self, file_path: Path) -> None:
        """Best-effort removal of a partial upload; failures are only logged."""
        try:
            if file_path.exists():
                os.remove(file_path)
                logger.debug("Cleaned up file: %s", file_path.name)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", file_path, e)
