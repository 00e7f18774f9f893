"""Router for image uploads."""

from typing import Annotated

import structlog
from fastapi import APIRouter, File, UploadFile

from inkpress.auth.dependencies import AdminClaims, CurrentClaims
from inkpress.storage.dependencies import StorageServiceDep
from inkpress.storage.schemas import (
    MultipleUploadResponse,
    UploadedFile,
    UploadResponse,
)
from inkpress.storage.service import LocalFileStorage, StoredFile


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/v1/uploads", tags=["uploads"])


async def _store(storage: LocalFileStorage, file: UploadFile, category: str) -> StoredFile:
    # One byte past the limit is enough to reject an oversized file.
    content = await file.read(storage.max_file_size + 1)
    return await storage.save(
        content=content,
        content_type=file.content_type,
        category=category,
        filename=file.filename,
    )


@router.post("/profile", response_model=UploadResponse, summary="Upload profile image")
async def upload_profile_image(
    storage: StorageServiceDep,
    claims: CurrentClaims,
    profile_image: Annotated[UploadFile, File(description="Profile image")],
) -> UploadResponse:
    stored = await _store(storage, profile_image, "profiles")
    return UploadResponse.from_stored(stored, "Profile image uploaded successfully")


@router.post("/post-cover", response_model=UploadResponse, summary="Upload post cover")
async def upload_post_cover(
    storage: StorageServiceDep,
    claims: AdminClaims,
    cover_image: Annotated[UploadFile, File(description="Cover image")],
) -> UploadResponse:
    stored = await _store(storage, cover_image, "posts")
    return UploadResponse.from_stored(stored, "Cover image uploaded successfully")


@router.post(
    "/multiple", response_model=MultipleUploadResponse, summary="Upload several images"
)
async def upload_multiple(
    storage: StorageServiceDep,
    claims: CurrentClaims,
    images: Annotated[list[UploadFile], File(description="Images")],
) -> MultipleUploadResponse:
    """Upload up to five images. The whole request is rejected if any file is."""
    storage.check_batch(len(images))
    for image in images:
        storage.validate(await image.read(storage.max_file_size + 1), image.content_type)
        await image.seek(0)

    stored = [await _store(storage, image, "misc") for image in images]
    logger.info("batch_uploaded", count=len(stored))
    return MultipleUploadResponse(
        message="Files uploaded successfully",
        files=[
            UploadedFile(
                filename=s.filename, original_name=s.original_name, url=s.url, size=s.size
            )
            for s in stored
        ],
        count=len(stored),
    )
