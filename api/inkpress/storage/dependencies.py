"""Dependencies for storage module."""

from typing import Annotated

from fastapi import Depends, Request

from inkpress.core.errors import ServiceUnavailableError
from inkpress.storage.service import LocalFileStorage


def get_storage_service(request: Request) -> LocalFileStorage:
    """Get file storage from app state."""
    storage = getattr(request.app.state, "file_storage", None)
    if storage is None:
        raise ServiceUnavailableError("File storage not available")
    return storage


StorageServiceDep = Annotated[LocalFileStorage, Depends(get_storage_service)]
