"""
Unit tests for BlobStorageService - blob naming, uploads, URL to path
recovery and the placeholder guard.

Run with: python -m pytest tests/test_blob_storage.py -v
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from athemaria.services import BlobStorageService, StorageError, cover_path, avatar_path
from fakes import FakeContainerClient

CONTAINER_URL = "https://athemariatest.blob.core.windows.net/athemaria-media"


class TestBlobPaths:
    def test_cover_path_uses_identifier_and_timestamp(self):
        assert cover_path("story-1", "My Cover.JPG", timestamp_ms=1700000000000) == "covers/story-1-1700000000000.jpg"

    def test_cover_path_without_extension_defaults_to_png(self):
        assert cover_path("story-1", "cover", timestamp_ms=5) == "covers/story-1-5.png"

    def test_avatar_path_is_per_user(self):
        assert avatar_path("uid-9", "me.webp") == "avatars/uid-9.webp"


class TestBlobStorageService:
    def setup_method(self):
        self.container = FakeContainerClient(CONTAINER_URL)
        self.storage = BlobStorageService(container=self.container, container_name="athemaria-media")

    def teardown_method(self):
        self.storage.shutdown()

    async def test_upload_story_cover_returns_public_url(self):
        url = await self.storage.upload_story_cover(b"png-bytes", "cover.png", "story-1", "image/png")

        [(path, (data, content_type))] = self.container.blobs.items()
        assert path.startswith("covers/story-1-") and path.endswith(".png")
        assert data == b"png-bytes"
        assert content_type == "image/png"
        assert url == f"{CONTAINER_URL}/{path}"

    async def test_upload_guesses_content_type(self):
        await self.storage.upload_avatar(b"jpeg", "selfie.jpg", "uid-1")

        assert self.container.blobs["avatars/uid-1.jpg"][1] == "image/jpeg"

    async def test_default_cover(self):
        url = await self.storage.upload_default_cover(b"placeholder")

        assert url == self.storage.get_default_cover_url()
        assert url == f"{CONTAINER_URL}/placeholders/cover.png"

    async def test_upload_failure_raises_storage_error(self):
        self.container.available = False

        with pytest.raises(StorageError):
            await self.storage.upload_file(b"x", "covers/x.png")

    def test_path_from_url_decodes_blob_name(self):
        url = f"{CONTAINER_URL}/covers/my%20story-12.png"
        assert self.storage.path_from_url(url) == "covers/my story-12.png"

    def test_path_from_url_ignores_other_locations(self):
        assert self.storage.path_from_url("https://elsewhere.example.com/covers/a.png") is None
        assert self.storage.path_from_url("/assets/cover.png") is None
        assert self.storage.path_from_url("") is None

    async def test_delete_by_url_removes_blob(self):
        url = await self.storage.upload_avatar(b"a", "a.png", "uid-2")

        assert await self.storage.delete_file_by_url(url) is True
        assert "avatars/uid-2.png" not in self.container.blobs

    async def test_placeholder_is_never_deleted(self):
        url = await self.storage.upload_default_cover(b"placeholder")

        assert await self.storage.delete_file("placeholders/cover.png") is False
        assert await self.storage.delete_file_by_url(url) is False
        assert "placeholders/cover.png" in self.container.blobs

    async def test_delete_missing_blob_returns_false(self):
        assert await self.storage.delete_file("covers/missing.png") is False
