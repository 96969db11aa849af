"""Tests for image uploads (Firebase Storage) and local post media."""

import io
import os
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from starlette.datastructures import UploadFile

from src.config import Settings
from src.storage.dependencies import get_storage_service
from src.storage.local import LocalMediaStorage
from src.storage.service import (
    FileTooLargeError,
    FirebaseStorageService,
    InvalidContentTypeError,
    StorageNotConfiguredError,
    StorageValidationError,
    read_upload_limited,
)


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 32
MP4_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 16


@pytest.fixture
def firebase_settings(tmp_path) -> Settings:
    creds = tmp_path / "creds.json"
    creds.write_text("{}")
    return Settings(
        firebase_enabled=True,
        firebase_credentials_path=str(creds),
        firebase_storage_bucket="reloc-test.appspot.com",
        upload_max_file_size_mb=1,
    )


@pytest.fixture
def mock_bucket() -> MagicMock:
    bucket = MagicMock()
    bucket.blob.return_value = MagicMock()
    return bucket


class TestFirebaseStorageService:
    """Tests for FirebaseStorageService."""

    def test_validate_rejects_oversized(self, firebase_settings):
        service = FirebaseStorageService(firebase_settings)

        with pytest.raises(FileTooLargeError):
            service.validate_image(PNG_BYTES + b"\x00" * (1024 * 1024), "image/png")

    def test_validate_rejects_declared_type(self, firebase_settings):
        service = FirebaseStorageService(firebase_settings)

        with pytest.raises(InvalidContentTypeError):
            service.validate_image(PNG_BYTES, "application/pdf")

    def test_validate_rejects_fake_image(self, firebase_settings):
        service = FirebaseStorageService(firebase_settings)

        with pytest.raises(StorageValidationError):
            service.validate_image(b"%PDF-1.7 not an image", "image/png")

    def test_validate_returns_detected_type(self, firebase_settings):
        service = FirebaseStorageService(firebase_settings)

        assert service.validate_image(JPEG_BYTES, "image/png") == "image/jpeg"

    @pytest.mark.asyncio
    async def test_upload_not_configured(self, settings):
        service = FirebaseStorageService(settings)

        with pytest.raises(StorageNotConfiguredError):
            await service.upload_image(PNG_BYTES, "image/png", "a.png")

    @pytest.mark.asyncio
    async def test_upload_puts_image_under_folder(self, firebase_settings, mock_bucket):
        # Arrange
        service = FirebaseStorageService(firebase_settings)

        # Act
        with patch("src.storage.service._init_firebase", return_value=mock_bucket):
            result = await service.upload_image(PNG_BYTES, "image/png", "a.png")

        # Assert
        storage_path = mock_bucket.blob.call_args.args[0]
        assert storage_path.startswith("reloc_dev/")
        assert storage_path.endswith(".png")
        assert result["file_url"] == (
            f"https://storage.googleapis.com/reloc-test.appspot.com/{storage_path}"
        )
        assert result["file_size"] == len(PNG_BYTES)
        blob = mock_bucket.blob.return_value
        blob.upload_from_string.assert_called_once_with(
            PNG_BYTES, content_type="image/png"
        )
        blob.make_public.assert_called_once()


class TestUploadEndpoint:
    """Tests for POST /api/upload."""

    def test_no_file_is_400(self, client: TestClient):
        response = client.post("/api/upload", data={"note": "nothing attached"})

        assert response.status_code == 400
        assert response.json()["message"] == "No file uploaded."

    def test_not_configured_is_503(self, client: TestClient):
        response = client.post(
            "/api/upload", files={"image": ("a.png", PNG_BYTES, "image/png")}
        )

        assert response.status_code == 503

    def test_upload_returns_image_url(
        self, client: TestClient, firebase_settings, mock_bucket
    ):
        # Arrange
        service = FirebaseStorageService(firebase_settings)
        client.app.dependency_overrides[get_storage_service] = lambda: service

        # Act
        try:
            with patch("src.storage.service._init_firebase", return_value=mock_bucket):
                response = client.post(
                    "/api/upload", files={"image": ("a.png", PNG_BYTES, "image/png")}
                )
        finally:
            client.app.dependency_overrides.clear()

        # Assert
        assert response.status_code == 200
        assert response.json()["imageUrl"].startswith(
            "https://storage.googleapis.com/reloc-test.appspot.com/reloc_dev/"
        )

    def test_config(self, client: TestClient):
        response = client.get("/api/upload/config")

        assert response.status_code == 200
        data = response.json()
        assert data["configured"] is False
        assert data["folder"] == "reloc_dev"
        assert data["allowed_types"] == ["image/jpeg", "image/png"]


class TestLocalMediaStorage:
    """Tests for LocalMediaStorage."""

    @pytest.mark.asyncio
    async def test_save_and_delete(self, tmp_path):
        storage = LocalMediaStorage(Settings(uploads_dir=str(tmp_path / "media")))

        url = await storage.save(MP4_BYTES, "clip.MP4")
        stored = tmp_path / "media" / url.rsplit("/", 1)[-1]

        assert url.startswith("/uploads/")
        assert url.endswith(".mp4")
        assert stored.read_bytes() == MP4_BYTES

        await storage.delete(url)
        assert not stored.exists()

    @pytest.mark.asyncio
    async def test_public_base_url_prefix(self, tmp_path):
        storage = LocalMediaStorage(
            Settings(uploads_dir=str(tmp_path), public_base_url="https://api.reloc.app/")
        )

        url = await storage.save(PNG_BYTES, None)

        assert url.startswith("https://api.reloc.app/uploads/")

    @pytest.mark.asyncio
    async def test_too_large(self, tmp_path):
        storage = LocalMediaStorage(
            Settings(uploads_dir=str(tmp_path), post_media_max_file_size_mb=1)
        )

        with pytest.raises(FileTooLargeError):
            await storage.save(b"\x00" * (1024 * 1024 + 1), "big.bin")

    def test_ensure_directory_creates_it(self, tmp_path):
        storage = LocalMediaStorage(Settings(uploads_dir=str(tmp_path / "new")))

        assert storage.ensure_directory().is_dir()

    @pytest.mark.asyncio
    async def test_extension_comes_from_content(self, tmp_path):
        storage = LocalMediaStorage(Settings(uploads_dir=str(tmp_path)))

        url = await storage.save(PNG_BYTES, "avatar.html")

        assert url.endswith(".png")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("content", "filename"),
        [
            (b"<html><script>alert(1)</script></html>", "page.html"),
            (b"fetch('/api/posts').then(r => r.json())", "app.js"),
            (b"%PDF-1.7 not media", "doc.pdf"),
        ],
    )
    async def test_rejects_non_media(self, tmp_path, content, filename):
        storage = LocalMediaStorage(Settings(uploads_dir=str(tmp_path)))

        with pytest.raises(InvalidContentTypeError) as exc_info:
            await storage.save(content, filename)

        assert exc_info.value.code == "invalid_content_type"
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_rejects_type_outside_allowlist(self, tmp_path):
        storage = LocalMediaStorage(
            Settings(uploads_dir=str(tmp_path), post_media_allowed_types=["image/png"])
        )

        with pytest.raises(InvalidContentTypeError):
            await storage.save(JPEG_BYTES, "photo.jpg")


class TestReadUploadLimited:
    """Tests for read_upload_limited."""

    @pytest.mark.asyncio
    async def test_reads_whole_file_within_limit(self):
        upload = UploadFile(file=io.BytesIO(PNG_BYTES), filename="a.png")

        assert await read_upload_limited(upload, 1024) == PNG_BYTES

    @pytest.mark.asyncio
    async def test_declared_size_rejected_before_reading(self):
        stream = io.BytesIO(b"\x00" * 2048)
        upload = UploadFile(file=stream, filename="big.png", size=2048)

        with pytest.raises(FileTooLargeError):
            await read_upload_limited(upload, 1024)

        assert stream.tell() == 0

    @pytest.mark.asyncio
    async def test_stops_reading_past_limit(self):
        upload = UploadFile(file=io.BytesIO(b"\x00" * 4096), filename="big.png")

        with pytest.raises(FileTooLargeError):
            await read_upload_limited(upload, 1024)


class TestPostMediaEndpoint:
    """Tests for media validation through POST /api/posts."""

    def test_html_media_is_415_and_not_stored(self, client: TestClient, uploads_dir):
        before = set(os.listdir(uploads_dir))

        response = client.post(
            "/api/posts",
            data={"author": "mallory", "content": "look"},
            files={
                "media": (
                    "page.html",
                    b"<html><script src='/uploads/x.js'></script></html>",
                    "text/html",
                )
            },
        )

        assert response.status_code == 415
        assert response.json()["error"] is True
        assert set(os.listdir(uploads_dir)) == before
        assert client.get("/api/posts").json() == []

    def test_oversized_media_is_413(self, client: TestClient, settings):
        max_size = settings.post_media_max_file_size_mb * 1024 * 1024
        too_big = PNG_BYTES + b"\x00" * max_size

        response = client.post(
            "/api/posts",
            data={"author": "alice", "content": "big"},
            files={"media": ("big.png", too_big, "image/png")},
        )

        assert response.status_code == 413
