"""Image uploads stored on local disk."""

from inkpress.storage.service import (
    FileTooLargeError,
    InvalidImageError,
    LocalFileStorage,
    StorageWriteError,
    StoredFile,
    TooManyFilesError,
)


__all__ = [
    "FileTooLargeError",
    "InvalidImageError",
    "LocalFileStorage",
    "StorageWriteError",
    "StoredFile",
    "TooManyFilesError",
]
