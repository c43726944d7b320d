"""
Azure Blob Storage service for Athemaria.

Handles story covers, user avatars and the shared placeholder cover.

Layout:
    covers/{identifier}-{timestamp_ms}.{ext}
    avatars/{user_id}.{ext}
    placeholders/cover.png
"""

from azure.storage.blob import BlobServiceClient, ContentSettings
from azure.core.exceptions import ResourceNotFoundError
from concurrent.futures import ThreadPoolExecutor
from typing import Optional
from urllib.parse import urlparse, unquote
import asyncio
import logging
import mimetypes
import os
import time

from athemaria.services.errors import StorageError

logger = logging.getLogger(__name__)

DEFAULT_COVER_PATH = "placeholders/cover.png"


def _extension(filename: str, fallback: str = "png") -> str:
    ext = os.path.splitext(filename or "")[1].lstrip(".").lower()
    return ext or fallback


def cover_path(identifier: str, filename: str, timestamp_ms: Optional[int] = None) -> str:
    """Blob path for a story cover; the timestamp keeps replaced covers from colliding."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"covers/{identifier}-{timestamp_ms}.{_extension(filename)}"


def avatar_path(user_id: str, filename: str) -> str:
    return f"avatars/{user_id}.{_extension(filename)}"


class BlobStorageService:
    """Azure Blob Storage service for covers and avatars."""

    def __init__(
        self,
        connection_string: Optional[str] = None,
        container_name: str = "athemaria-media",
        default_cover_path: str = DEFAULT_COVER_PATH,
        container=None,
        logger=None
    ):
        """
        Initialize blob storage service.

        Args:
            connection_string: Azure Storage connection string
            container_name: Name of the blob container
            default_cover_path: Blob path of the placeholder cover
            container: Optional pre-built ContainerClient (skips initialize())
            logger: Optional AthemariaLogger for storage debug logging
        """
        self.connection_string = connection_string
        self.container_name = container_name
        self.default_cover_path = default_cover_path
        self.logger = logger
        self.container = container
        self._executor = ThreadPoolExecutor(max_workers=3, thread_name_prefix="blob")
        self._initialized = container is not None

    def initialize(self):
        """Initialize the blob storage client, creating the container if needed."""
        if self._initialized:
            return

        if not self.connection_string:
            raise StorageError("Blob storage connection string is not configured")

        try:
            self.client = BlobServiceClient.from_connection_string(self.connection_string)
            self.container = self.client.get_container_client(self.container_name)

            if not self.container.exists():
                logger.info(f"Creating container: {self.container_name}")
                self.container.create_container(public_access="blob")

            self._initialized = True
            logger.info(f"Azure Blob Storage initialized: {self.container_name}")
        except Exception as e:
            logger.warning(f"Blob Storage initialization failed: {e}")
            raise

    async def _run_async(self, func, *args, **kwargs):
        """Run a sync function in the thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor,
            lambda: func(*args, **kwargs)
        )

    def shutdown(self):
        if self._executor:
            self._executor.shutdown(wait=True)
            self._executor = None

    def url_for(self, path: str) -> str:
        """Public URL of a blob path (computed locally, no request)."""
        return self.container.get_blob_client(path).url

    def path_from_url(self, url: str) -> Optional[str]:
        """
        Recover the blob path from a public URL.

        Returns:
            The blob path, or None if the URL does not point into this container
        """
        if not url:
            return None

        container_path = urlparse(self.container.url).path.rstrip("/") + "/"
        parsed = urlparse(url)
        if not parsed.path.startswith(container_path):
            return None
        return unquote(parsed.path[len(container_path):]) or None

    def _upload_file_sync(self, data: bytes, path: str, content_type: Optional[str]) -> str:
        """Upload bytes and return the blob URL."""
        if not content_type:
            content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"

        blob_client = self.container.get_blob_client(path)
        blob_client.upload_blob(
            data,
            overwrite=True,
            content_settings=ContentSettings(content_type=content_type)
        )
        return blob_client.url

    async def upload_file(self, data: bytes, path: str, content_type: Optional[str] = None) -> str:
        """
        Upload a file and return its public URL.

        Args:
            data: File bytes
            path: Destination blob path
            content_type: MIME type (guessed from the path when omitted)

        Returns:
            Blob URL

        Raises:
            StorageError: the upload failed
        """
        started = time.time()
        try:
            url = await self._run_async(self._upload_file_sync, data, path, content_type)
        except Exception as e:
            logger.error(f"Error uploading file to {path}: {e}", exc_info=True)
            raise StorageError("Failed to upload file") from e

        if self.logger:
            self.logger.storage_operation(
                operation="upload",
                path=f"{self.container_name}/{path}",
                data_summary=content_type or "guessed content type",
                size_bytes=len(data),
                duration=time.time() - started
            )
        return url

    async def upload_story_cover(
        self,
        data: bytes,
        filename: str,
        identifier: str,
        content_type: Optional[str] = None
    ) -> str:
        """
        Upload a story cover.

        Args:
            data: Image bytes
            filename: Original filename (its extension is kept)
            identifier: Story id, or the author's uid for a story not saved yet
            content_type: Image MIME type

        Returns:
            Public URL of the new cover
        """
        return await self.upload_file(data, cover_path(identifier, filename), content_type)

    async def upload_avatar(
        self,
        data: bytes,
        filename: str,
        user_id: str,
        content_type: Optional[str] = None
    ) -> str:
        """Upload a user's avatar, replacing any previous one with the same extension."""
        return await self.upload_file(data, avatar_path(user_id, filename), content_type)

    async def upload_default_cover(self, data: bytes) -> str:
        return await self.upload_file(data, self.default_cover_path, "image/png")

    def get_default_cover_url(self) -> str:
        return self.url_for(self.default_cover_path)

    def _delete_file_sync(self, path: str) -> bool:
        try:
            self.container.get_blob_client(path).delete_blob()
        except ResourceNotFoundError:
            return False
        return True

    async def delete_file(self, path: str) -> bool:
        """
        Delete a blob. The placeholder cover is never deleted.

        Returns:
            True if a blob was deleted, False if it was the placeholder or
            did not exist
        """
        if not path or path == self.default_cover_path:
            return False

        started = time.time()
        try:
            deleted = await self._run_async(self._delete_file_sync, path)
        except Exception as e:
            logger.error(f"Error deleting file {path}: {e}", exc_info=True)
            raise StorageError("Failed to delete file") from e

        if not deleted:
            logger.warning(f"File {path} not found for delete")
        elif self.logger:
            self.logger.storage_operation(
                operation="delete",
                path=f"{self.container_name}/{path}",
                data_summary="Blob deleted",
                duration=time.time() - started
            )
        return deleted

    async def delete_file_by_url(self, url: str) -> bool:
        """Delete the blob behind a public URL; foreign URLs are ignored."""
        path = self.path_from_url(url)
        if path is None:
            return False
        return await self.delete_file(path)
