"""Pydantic schemas for uploads."""

from datetime import datetime

from pydantic import BaseModel, Field

from inkpress.storage.service import StoredFile


class UploadResponse(BaseModel):
    """Response model for a single stored image."""

    message: str
    image_url: str = Field(..., description="Path the image is served from")
    filename: str
    content_type: str
    file_size: int
    uploaded_at: datetime

    @classmethod
    def from_stored(cls, stored: StoredFile, message: str) -> "UploadResponse":
        return cls(
            message=message,
            image_url=stored.url,
            filename=stored.filename,
            content_type=stored.content_type,
            file_size=stored.size,
            uploaded_at=stored.uploaded_at,
        )


class UploadedFile(BaseModel):
    filename: str
    original_name: str | None = None
    url: str
    size: int


class MultipleUploadResponse(BaseModel):
    message: str
    files: list[UploadedFile]
    count: int
