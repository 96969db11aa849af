"""Dependencies for storage module."""

from typing import Annotated

from fastapi import Depends, HTTPException, status

from src.config.settings import Settings, get_settings
from src.storage.service import FirebaseStorageService, StorageError


_storage_service: FirebaseStorageService | None = None


def get_storage_service(
    settings: Annotated[Settings, Depends(get_settings)],
) -> FirebaseStorageService:
    """Get storage service instance (singleton)."""
    global _storage_service  # noqa: PLW0603

    if _storage_service is None:
        _storage_service = FirebaseStorageService(settings)

    return _storage_service


StorageServiceDep = Annotated[FirebaseStorageService, Depends(get_storage_service)]


def handle_storage_error(error: StorageError) -> HTTPException:
    """Convert storage errors to HTTP exceptions."""
    status_map = {
        "storage_not_configured": status.HTTP_503_SERVICE_UNAVAILABLE,
        "file_too_large": status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        "invalid_content_type": status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
        "validation_error": status.HTTP_400_BAD_REQUEST,
        "upload_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }

    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error.message,
    )
