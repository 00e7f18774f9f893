"""Local disk storage for uploaded images.

Handles uploads with:
- Declared MIME allow list (images only)
- Magic bytes validation of the actual content
- Size and per-request count limits
- Unique file names under ``<upload_dir>/<category>/``
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from uuid import uuid4

import structlog

from inkpress.config.settings import Settings
from inkpress.core.errors import ServiceUnavailableError, ValidationError
from inkpress.utils.magic_bytes import check_image_content
from inkpress.utils.timestamps import utcnow


logger = structlog.get_logger(__name__)

CATEGORIES = frozenset({"profiles", "posts", "misc"})


class FileTooLargeError(ValidationError):
    code = "file_too_large"

    def __init__(self, size: int, max_size: int) -> None:
        message = (
            f"File size ({size / 1024 / 1024:.2f} MB) exceeds "
            f"maximum allowed ({max_size / 1024 / 1024:.2f} MB)"
        )
        super().__init__(message, field="file")


class InvalidImageError(ValidationError):
    code = "invalid_image"

    def __init__(self, message: str) -> None:
        super().__init__(message, field="file")


class TooManyFilesError(ValidationError):
    code = "too_many_files"

    def __init__(self, count: int, max_files: int) -> None:
        super().__init__(
            f"Too many files ({count}). Maximum {max_files} files allowed per request.",
            field="files",
        )


class StorageWriteError(ServiceUnavailableError):
    code = "upload_failed"


@dataclass(frozen=True)
class StoredFile:
    url: str
    filename: str
    original_name: str | None
    content_type: str
    size: int
    uploaded_at: datetime


class LocalFileStorage:
    """Service for storing uploaded images on local disk."""

    EXTENSION_MAP: dict[str, str] = {
        "image/jpeg": ".jpg",
        "image/png": ".png",
        "image/gif": ".gif",
        "image/webp": ".webp",
        "image/bmp": ".bmp",
        "image/tiff": ".tiff",
    }

    def __init__(
        self,
        root: str | Path,
        max_file_size: int = 5 * 1024 * 1024,
        max_files_per_request: int = 5,
        allowed_types: list[str] | None = None,
    ) -> None:
        self.root = Path(root)
        self.max_file_size = max_file_size
        self.max_files_per_request = max_files_per_request
        self.allowed_types = frozenset(
            allowed_types or ["image/jpeg", "image/png", "image/gif", "image/webp"]
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocalFileStorage":
        return cls(
            root=settings.upload_dir,
            max_file_size=settings.upload_max_file_size_bytes,
            max_files_per_request=settings.upload_max_files_per_request,
            allowed_types=settings.upload_allowed_image_types,
        )

    def check_batch(self, count: int) -> None:
        """Reject an upload request before reading any file.

        Raises:
            ValidationError: No files, or more than the per-request limit.
        """
        if count == 0:
            raise ValidationError("No file uploaded", field="files")
        if count > self.max_files_per_request:
            raise TooManyFilesError(count, self.max_files_per_request)

    def validate(self, content: bytes, content_type: str | None) -> str:
        """Validate one file and return its verified MIME type."""
        size = len(content)
        if size == 0:
            raise InvalidImageError("Uploaded file is empty")
        if size > self.max_file_size:
            raise FileTooLargeError(size, self.max_file_size)

        is_valid, detected, error = check_image_content(
            content[:64], content_type, self.allowed_types
        )
        if not is_valid:
            logger.warning(
                "magic_bytes_validation_failed",
                declared_type=content_type,
                detected_type=detected,
                error=error,
            )
            raise InvalidImageError(error or "Invalid file content")
        return detected

    def _build_name(self, category: str, content_type: str) -> str:
        timestamp = utcnow().strftime("%Y%m%d%H%M%S")
        return f"{category}-{timestamp}-{uuid4().hex[:12]}{self.EXTENSION_MAP[content_type]}"

    async def save(
        self,
        content: bytes,
        content_type: str | None,
        category: str,
        filename: str | None = None,
    ) -> StoredFile:
        """Validate and write an image.

        Returns:
            StoredFile whose ``url`` is ``/uploads/<category>/<name>``.

        Raises:
            ValidationError: Rejected by type, content or size checks.
            StorageWriteError: Disk write failed.
        """
        if category not in CATEGORIES:
            raise ValidationError(f"Unknown upload category: {category}", field="category")

        actual_type = self.validate(content, content_type)
        name = self._build_name(category, actual_type)
        directory = self.root / category
        path = directory / name

        def write() -> None:
            directory.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)

        try:
            await asyncio.to_thread(write)
        except OSError as e:
            logger.exception("upload_failed", path=str(path), error=str(e))
            raise StorageWriteError("Failed to store uploaded file") from e

        logger.info(
            "file_uploaded",
            category=category,
            filename=name,
            content_type=actual_type,
            file_size=len(content),
        )
        return StoredFile(
            url=f"/uploads/{category}/{name}",
            filename=name,
            original_name=filename,
            content_type=actual_type,
            size=len(content),
            uploaded_at=utcnow(),
        )

    async def delete(self, url: str) -> bool:
        """Delete a previously stored file by its ``/uploads/...`` url."""
        relative = url.removeprefix("/uploads/")
        path = (self.root / relative).resolve()
        if self.root.resolve() not in path.parents:
            return False

        def remove() -> bool:
            if not path.is_file():
                return False
            path.unlink()
            return True

        return await asyncio.to_thread(remove)
