"""Firebase Storage service for image uploads.

Handles image uploads with:
- Size and declared content type limits, checked while reading the upload
- Magic bytes validation of the actual content
- Public URL generation under the configured folder
"""

from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import quote
from uuid import uuid4

import structlog
from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool


if TYPE_CHECKING:
    from google.cloud.storage import Bucket

from src.config.settings import Settings
from src.utils.magic_bytes import validate_content_type


logger = structlog.get_logger(__name__)


class StorageError(Exception):
    """Base error for storage operations."""

    def __init__(self, message: str, code: str = "storage_error") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


class StorageNotConfiguredError(StorageError):
    """Error when Firebase Storage is not configured."""

    def __init__(self, message: str = "Image storage is not configured") -> None:
        super().__init__(message, "storage_not_configured")


class StorageUploadError(StorageError):
    """Error during file upload."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "upload_error")


class StorageValidationError(StorageError):
    """File content failed validation."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "validation_error")


class FileTooLargeError(StorageError):
    """Error when file exceeds size limit."""

    def __init__(self, size: int, max_size: int) -> None:
        message = (
            f"File size ({size / 1024 / 1024:.2f} MB) exceeds "
            f"maximum allowed ({max_size / 1024 / 1024:.2f} MB)"
        )
        super().__init__(message, "file_too_large")


class InvalidContentTypeError(StorageError):
    """Error when content type is not allowed."""

    def __init__(self, content_type: str, allowed: list[str]) -> None:
        message = f"Content type '{content_type}' is not allowed. Allowed: {', '.join(allowed)}"
        super().__init__(message, "invalid_content_type")


UPLOAD_CHUNK_SIZE = 1024 * 1024


async def read_upload_limited(upload: UploadFile, max_size: int) -> bytes:
    """Read an uploaded file, stopping as soon as it passes ``max_size``.

    Raises:
        FileTooLargeError: If the declared or actual size exceeds ``max_size``.
    """
    if upload.size is not None and upload.size > max_size:
        raise FileTooLargeError(upload.size, max_size)

    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await upload.read(UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if total > max_size:
            raise FileTooLargeError(total, max_size)
        chunks.append(chunk)
    return b"".join(chunks)


_firebase_app = None
_storage_bucket: "Bucket | None" = None


def _init_firebase(settings: Settings) -> "Bucket":
    """Initialize the Firebase Admin SDK and return the storage bucket.

    Raises:
        StorageNotConfiguredError: If Firebase is not configured.
    """
    global _firebase_app, _storage_bucket  # noqa: PLW0603

    if _storage_bucket is not None:
        return _storage_bucket

    if not settings.firebase_configured:
        raise StorageNotConfiguredError

    # Lazy import to avoid loading Firebase SDK unless needed
    import firebase_admin  # noqa: PLC0415
    from firebase_admin import credentials, storage  # noqa: PLC0415

    creds_path = settings.firebase_credentials_path
    if not creds_path or not Path(creds_path).exists():
        raise StorageNotConfiguredError(
            f"Firebase credentials file not found: {creds_path}"
        )

    try:
        if _firebase_app is None:
            _firebase_app = firebase_admin.initialize_app(
                credentials.Certificate(creds_path),
                {
                    "storageBucket": settings.firebase_storage_bucket,
                    "projectId": settings.firebase_project_id,
                },
            )
            logger.info(
                "firebase_initialized",
                project_id=settings.firebase_project_id,
                bucket=settings.firebase_storage_bucket,
            )

        _storage_bucket = storage.bucket()
        return _storage_bucket

    except Exception as e:
        logger.exception("firebase_init_failed", error=str(e))
        raise StorageNotConfiguredError(f"Failed to initialize Firebase: {e}") from e


class FirebaseStorageService:
    """Uploads images to Firebase Storage."""

    EXTENSION_MAP: dict[str, str] = {
        "image/jpeg": ".jpg",
        "image/png": ".png",
        "image/webp": ".webp",
        "image/gif": ".gif",
    }

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._bucket: Bucket | None = None

    @property
    def is_configured(self) -> bool:
        return self.settings.firebase_configured

    @property
    def max_file_size(self) -> int:
        """Maximum file size in bytes."""
        return self.settings.upload_max_file_size_mb * 1024 * 1024

    @property
    def allowed_types(self) -> list[str]:
        return self.settings.upload_allowed_image_types

    def _get_bucket(self) -> "Bucket":
        if self._bucket is None:
            self._bucket = _init_firebase(self.settings)
        return self._bucket

    def _build_storage_path(
        self, content_type: str, original_filename: str | None = None
    ) -> str:
        """Build ``{folder}/{uuid}{ext}`` for a new image."""
        ext = self.EXTENSION_MAP.get(content_type, "")
        if not ext and original_filename:
            ext = Path(original_filename).suffix.lower()
        return f"{self.settings.upload_folder}/{uuid4().hex}{ext}"

    def _generate_public_url(self, storage_path: str) -> str:
        bucket_name = self.settings.firebase_storage_bucket
        encoded_path = "/".join(
            quote(part, safe="") for part in storage_path.split("/")
        )
        return f"https://storage.googleapis.com/{bucket_name}/{encoded_path}"

    def validate_image(self, content: bytes, content_type: str) -> str:
        """Check size, declared type and magic bytes.

        Returns:
            The detected content type.

        Raises:
            FileTooLargeError: If the file exceeds the size limit.
            InvalidContentTypeError: If the declared type is not allowed.
            StorageValidationError: If the content is not an allowed image.
        """
        file_size = len(content)
        if file_size > self.max_file_size:
            raise FileTooLargeError(file_size, self.max_file_size)

        if content_type not in self.allowed_types:
            raise InvalidContentTypeError(content_type, self.allowed_types)

        is_valid, detected_type, error_msg = validate_content_type(
            content[:64],
            content_type,
            allowed_types=frozenset(self.allowed_types),
        )
        if not is_valid:
            logger.warning(
                "magic_bytes_validation_failed",
                declared_type=content_type,
                detected_type=detected_type,
                error=error_msg,
            )
            raise StorageValidationError(error_msg or "Invalid file content")

        return detected_type or content_type

    async def upload_image(
        self,
        content: bytes,
        content_type: str,
        filename: str | None = None,
    ) -> dict[str, str | int | datetime]:
        """Upload an image and make it publicly readable.

        Returns:
            Dict with file_url, storage_path, content_type, file_size, uploaded_at.

        Raises:
            StorageNotConfiguredError: If Firebase is not configured.
            FileTooLargeError, InvalidContentTypeError, StorageValidationError:
                If the image fails validation.
            StorageUploadError: If the upload fails.
        """
        if not self.is_configured:
            raise StorageNotConfiguredError

        actual_type = self.validate_image(content, content_type)
        storage_path = self._build_storage_path(actual_type, filename)

        try:
            bucket = self._get_bucket()
            blob = bucket.blob(storage_path)
            blob.cache_control = "public, max-age=31536000, immutable"
            await run_in_threadpool(
                blob.upload_from_string, content, content_type=actual_type
            )
            await run_in_threadpool(blob.make_public)
        except StorageNotConfiguredError:
            raise
        except Exception as e:
            logger.exception("upload_failed", storage_path=storage_path, error=str(e))
            raise StorageUploadError(f"Failed to upload file: {e}") from e

        logger.info(
            "image_uploaded",
            storage_path=storage_path,
            content_type=actual_type,
            file_size=len(content),
        )
        return {
            "file_url": self._generate_public_url(storage_path),
            "storage_path": storage_path,
            "content_type": actual_type,
            "file_size": len(content),
            "uploaded_at": datetime.now(UTC),
        }
