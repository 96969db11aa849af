"""Router for image upload endpoints."""

from typing import Annotated

import structlog
from fastapi import APIRouter, File, HTTPException, UploadFile, status

from src.storage.dependencies import StorageServiceDep, handle_storage_error
from src.storage.schemas import ImageUploadResponse, StorageConfigResponse
from src.storage.service import StorageError, read_upload_limited


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["storage"])


@router.get(
    "/upload/config",
    response_model=StorageConfigResponse,
    summary="Get image storage configuration",
)
async def get_storage_config(storage: StorageServiceDep) -> StorageConfigResponse:
    return StorageConfigResponse(
        configured=storage.is_configured,
        folder=storage.settings.upload_folder,
        max_file_size_mb=storage.settings.upload_max_file_size_mb,
        allowed_types=storage.allowed_types,
    )


@router.post(
    "/upload",
    response_model=ImageUploadResponse,
    summary="Upload image",
    description="Upload a JPEG or PNG image and get back its public URL.",
)
async def upload_image(
    storage: StorageServiceDep,
    image: Annotated[UploadFile | None, File(description="Image file")] = None,
) -> ImageUploadResponse:
    """Upload an image to the image store.

    Raises:
        HTTPException: 400 when no file is sent, otherwise mapped from the
            storage error.
    """
    if image is None or not image.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file uploaded.",
        )

    logger.info(
        "image_upload_request",
        filename=image.filename,
        content_type=image.content_type,
    )

    try:
        content = await read_upload_limited(image, storage.max_file_size)
        result = await storage.upload_image(
            content=content,
            content_type=image.content_type or "application/octet-stream",
            filename=image.filename,
        )
    except StorageError as e:
        logger.warning("image_upload_failed", code=e.code, error=e.message)
        raise handle_storage_error(e) from e

    return ImageUploadResponse(image_url=str(result["file_url"]))
