"""Local disk storage for post media.

Files land in ``settings.uploads_dir`` and are served by the static mount at
``settings.uploads_url_path``. Names are ``<epoch-ms>-<random><ext>`` so two
uploads in the same millisecond never collide. The extension comes from the
type sniffed from the content, never from the client filename, so only
allowlisted image and video files are ever served.
"""

import time
from pathlib import Path
from uuid import uuid4

import structlog
from starlette.concurrency import run_in_threadpool

from src.config.settings import Settings
from src.storage.service import (
    FileTooLargeError,
    InvalidContentTypeError,
    StorageUploadError,
)
from src.utils.magic_bytes import detect_content_type


logger = structlog.get_logger(__name__)


class LocalMediaStorage:
    """Writes uploaded post media to the uploads directory."""

    EXTENSION_MAP: dict[str, str] = {
        "image/jpeg": ".jpg",
        "image/png": ".png",
        "image/gif": ".gif",
        "image/webp": ".webp",
        "video/mp4": ".mp4",
        "video/quicktime": ".mov",
        "video/webm": ".webm",
    }

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.directory = Path(settings.uploads_dir)

    @property
    def max_file_size(self) -> int:
        return self.settings.post_media_max_file_size_mb * 1024 * 1024

    def ensure_directory(self) -> Path:
        """Create the uploads directory if it does not exist yet."""
        if self.directory.exists():
            logger.info("uploads_directory_exists", path=str(self.directory))
        else:
            self.directory.mkdir(parents=True, exist_ok=True)
            logger.info("uploads_directory_created", path=str(self.directory))
        return self.directory

    @property
    def allowed_types(self) -> list[str]:
        return self.settings.post_media_allowed_types

    def detect_type(self, content: bytes) -> str:
        """Sniff the media type and check it against the allowlist.

        Raises:
            InvalidContentTypeError: If the content is not an allowed type.
        """
        detected = detect_content_type(content[:64])
        if detected is None or detected not in self.allowed_types:
            raise InvalidContentTypeError(detected or "unknown", self.allowed_types)
        return detected

    def build_filename(self, content_type: str) -> str:
        ext = self.EXTENSION_MAP.get(content_type, "")
        return f"{int(time.time() * 1000)}-{uuid4().hex[:8]}{ext}"

    def public_url(self, filename: str) -> str:
        """URL a client uses to fetch a stored file."""
        path = f"{self.settings.uploads_url_path.rstrip('/')}/{filename}"
        if self.settings.public_base_url:
            return f"{self.settings.public_base_url.rstrip('/')}{path}"
        return path

    async def save(self, content: bytes, original_filename: str | None) -> str:
        """Store ``content`` and return its public URL.

        Raises:
            FileTooLargeError: If content exceeds the configured limit.
            InvalidContentTypeError: If content is not an allowed image or video.
            StorageUploadError: If the file cannot be written.
        """
        if len(content) > self.max_file_size:
            raise FileTooLargeError(len(content), self.max_file_size)

        try:
            content_type = self.detect_type(content)
        except InvalidContentTypeError:
            logger.warning(
                "media_type_rejected",
                original_filename=original_filename,
                file_size=len(content),
            )
            raise

        filename = self.build_filename(content_type)
        path = self.directory / filename

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            await run_in_threadpool(path.write_bytes, content)
        except OSError as e:
            logger.exception("media_write_failed", path=str(path), error=str(e))
            raise StorageUploadError(f"Failed to store media: {e}") from e

        logger.info("media_stored", filename=filename, file_size=len(content))
        return self.public_url(filename)

    async def delete(self, url: str) -> None:
        """Remove a stored file given the URL ``save`` returned."""
        path = self.directory / Path(url).name
        try:
            await run_in_threadpool(path.unlink, missing_ok=True)
        except OSError as e:
            logger.warning("media_delete_failed", path=str(path), error=str(e))
