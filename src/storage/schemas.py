"""Pydantic schemas for storage operations."""

from pydantic import BaseModel, ConfigDict, Field


class ImageUploadResponse(BaseModel):
    """Response for a successful image upload."""

    model_config = ConfigDict(populate_by_name=True)

    image_url: str = Field(
        ..., alias="imageUrl", description="Public URL of the uploaded image"
    )


class StorageConfigResponse(BaseModel):
    """Storage configuration status."""

    configured: bool = Field(..., description="Whether storage is configured")
    folder: str = Field(..., description="Folder images are stored under")
    max_file_size_mb: int = Field(..., description="Maximum file size in MB")
    allowed_types: list[str] = Field(..., description="Allowed MIME types")
