"""Storage module: Firebase image uploads and local post media."""

from src.storage.dependencies import StorageServiceDep, get_storage_service
from src.storage.local import LocalMediaStorage
from src.storage.schemas import ImageUploadResponse, StorageConfigResponse
from src.storage.service import (
    FileTooLargeError,
    FirebaseStorageService,
    InvalidContentTypeError,
    StorageError,
    StorageNotConfiguredError,
    StorageUploadError,
    StorageValidationError,
)


__all__ = [
    "FileTooLargeError",
    "FirebaseStorageService",
    "ImageUploadResponse",
    "InvalidContentTypeError",
    "LocalMediaStorage",
    "StorageConfigResponse",
    "StorageError",
    "StorageNotConfiguredError",
    "StorageServiceDep",
    "StorageUploadError",
    "StorageValidationError",
    "get_storage_service",
]
