"""
Object storage for recorded audio.

``ObjectStorage`` is the interface the upload and retrieval paths depend on;
``MinioStorage`` implements it against any S3-compatible endpoint with the
MinIO client. The client is synchronous, so calls run in a worker thread.
"""

import asyncio
import io
import logging
from abc import ABC, abstractmethod
from datetime import timedelta

from minio import Minio
from minio.error import S3Error

from readaloud.core.config import Settings
from readaloud.core.exceptions import StorageError

logger = logging.getLogger(__name__)


class ObjectStorage(ABC):
    """Abstract base class for audio object storage backends."""

    @abstractmethod
    async def upload(self, key: str, data: bytes, content_type: str) -> None:
        """
        Write an object.

        Args:
            key: The destination path/name in storage.
            data: Object contents.
            content_type: MIME type of the object.

        Raises:
            StorageError: If the write fails.
        """

    @abstractmethod
    async def signed_url(self, key: str, expires_s: int = 3600) -> str:
        """
        Return a time-limited GET URL for *key*.

        Raises:
            StorageError: If the URL cannot be generated.
        """


class MinioStorage(ObjectStorage):
    """Handles object storage operations using MinIO.

    Args:
        client: A configured ``Minio`` client.
        bucket_name: Bucket holding all recordings.
    """

    def __init__(self, client: Minio, bucket_name: str) -> None:
        self._client = client
        self._bucket_name = bucket_name

    @property
    def bucket_name(self) -> str:
        return self._bucket_name

    async def ensure_bucket(self) -> None:
        """Create the bucket if it does not exist yet."""
        try:
            exists = await asyncio.to_thread(
                self._client.bucket_exists, bucket_name=self._bucket_name
            )
            if not exists:
                await asyncio.to_thread(self._client.make_bucket, bucket_name=self._bucket_name)
                logger.info("Bucket created: %s", self._bucket_name)
        except S3Error as exc:
            raise StorageError(f"Cannot prepare bucket {self._bucket_name}: {exc}") from exc

    async def upload(self, key: str, data: bytes, content_type: str) -> None:
        try:
            await asyncio.to_thread(
                self._client.put_object,
                bucket_name=self._bucket_name,
                object_name=key,
                data=io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )
        except Exception as exc:
            logger.exception("Object upload failed: bucket=%s key=%s", self._bucket_name, key)
            raise StorageError(key=key) from exc
        logger.info(
            "Object uploaded: bucket=%s key=%s size=%s", self._bucket_name, key, len(data)
        )

    async def signed_url(self, key: str, expires_s: int = 3600) -> str:
        try:
            return await asyncio.to_thread(
                self._client.presigned_get_object,
                bucket_name=self._bucket_name,
                object_name=key,
                expires=timedelta(seconds=expires_s),
            )
        except Exception as exc:
            logger.exception("Signed URL generation failed: key=%s", key)
            raise StorageError(detail="Failed to generate playback URL", key=key) from exc


def create_object_storage(settings: Settings) -> MinioStorage:
    """Build the MinIO-backed storage from application settings."""
    client = Minio(
        endpoint=settings.storage_endpoint,
        access_key=settings.storage_access_key,
        secret_key=settings.storage_secret_key,
        secure=settings.storage_secure,
        region=settings.storage_region,
    )
    return MinioStorage(client, settings.storage_bucket)
