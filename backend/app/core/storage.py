"""Blob storage for original and transcoded video artifacts.

S3 (or any S3-compatible endpoint such as MinIO) backs the store. Clients
upload originals directly with a presigned PUT; the service only streams
originals out to the encoder and pushes transcoded files back in.

boto3 is synchronous, so every network call is pushed onto a worker thread.
"""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Optional

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from app.core.errors import StorageError

logger = logging.getLogger(__name__)

_MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}


@dataclass
class StorageConfig:
    """Storage configuration."""
    bucket: str
    region: str = "us-east-1"
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    endpoint_url: Optional[str] = None
    multipart_chunk_size: int = 8 * 1024 * 1024


@dataclass
class PresignedRequest:
    """A time-limited capability to perform one request against one object."""
    url: str
    method: str
    expires_at: datetime
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class StorageResult:
    """Result of a storage write."""
    key: str
    file_size: int = 0
    etag: Optional[str] = None


class BlobStream(ABC):
    """An opened object whose bytes are read incrementally."""

    @abstractmethod
    def iter_chunks(self, chunk_size: int) -> AsyncIterator[bytes]:
        """Yield the object's bytes in chunks of at most ``chunk_size``."""

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying connection."""


class BlobStore(ABC):
    """Abstract blob store used by the upload and transcode pipeline."""

    @abstractmethod
    async def presign_upload(
        self, key: str, content_type: str, expires_in: int = 3600
    ) -> PresignedRequest:
        """Issue a write-capable descriptor for ``key``."""

    @abstractmethod
    async def presign_download(
        self, key: str, expires_in: int = 3600, as_attachment: bool = False
    ) -> str:
        """Issue a read-only URL for ``key``."""

    @abstractmethod
    async def open_stream(self, key: str) -> BlobStream:
        """Open ``key`` for streaming reads.

        Raises:
            StorageError: the object is missing or the store is unreachable
        """

    @abstractmethod
    async def upload_file(
        self, file_path: str, key: str, content_type: str = "application/octet-stream"
    ) -> StorageResult:
        """Upload a local file to ``key``."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete ``key``; returns False when the store rejected the delete."""

    async def close(self) -> None:
        """Release client resources."""


class S3BlobStream(BlobStream):
    """Streaming body of an S3 ``get_object`` response."""

    def __init__(self, key: str, body, content_length: Optional[int] = None):
        self.key = key
        self._body = body
        self.content_length = content_length

    async def iter_chunks(self, chunk_size: int) -> AsyncIterator[bytes]:
        while True:
            try:
                chunk = await asyncio.to_thread(self._body.read, chunk_size)
            except (BotoCoreError, ClientError, OSError) as e:
                raise StorageError(f"Failed reading object {self.key}: {e}") from e
            if not chunk:
                break
            yield chunk

    async def close(self) -> None:
        await asyncio.to_thread(self._body.close)


class S3BlobStore(BlobStore):
    """S3/MinIO compatible blob store."""

    def __init__(self, config: StorageConfig, client=None):
        self.config = config
        self._client = client

    def _get_client(self):
        """Get or create S3 client."""
        if self._client is None:
            client_kwargs = {
                "service_name": "s3",
                "region_name": self.config.region or "us-east-1",
                "config": BotoConfig(signature_version="s3v4"),
            }

            if self.config.access_key and self.config.secret_key:
                client_kwargs["aws_access_key_id"] = self.config.access_key
                client_kwargs["aws_secret_access_key"] = self.config.secret_key

            # For MinIO or other S3-compatible storage
            if self.config.endpoint_url:
                client_kwargs["endpoint_url"] = self.config.endpoint_url
                client_kwargs["config"] = BotoConfig(
                    signature_version="s3v4",
                    s3={"addressing_style": "path"},
                )

            self._client = boto3.client(**client_kwargs)

        return self._client

    async def presign_upload(
        self, key: str, content_type: str, expires_in: int = 3600
    ) -> PresignedRequest:
        client = self._get_client()
        try:
            url = client.generate_presigned_url(
                "put_object",
                Params={
                    "Bucket": self.config.bucket,
                    "Key": key,
                    "ContentType": content_type,
                },
                ExpiresIn=expires_in,
                HttpMethod="PUT",
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Could not presign upload for {key}: {e}") from e

        return PresignedRequest(
            url=url,
            method="PUT",
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            headers={"Content-Type": content_type},
        )

    async def presign_download(
        self, key: str, expires_in: int = 3600, as_attachment: bool = False
    ) -> str:
        client = self._get_client()
        params = {"Bucket": self.config.bucket, "Key": key}
        if as_attachment:
            filename = os.path.basename(key)
            params["ResponseContentDisposition"] = f'attachment; filename="{filename}"'
        try:
            return client.generate_presigned_url(
                "get_object",
                Params=params,
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Could not presign download for {key}: {e}") from e

    async def open_stream(self, key: str) -> BlobStream:
        client = self._get_client()
        try:
            response = await asyncio.to_thread(
                client.get_object, Bucket=self.config.bucket, Key=key
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in _MISSING_KEY_CODES:
                raise StorageError(f"Object {key} has not been uploaded") from e
            raise StorageError(f"Could not open object {key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Could not open object {key}: {e}") from e

        return S3BlobStream(key, response["Body"], response.get("ContentLength"))

    async def upload_file(
        self, file_path: str, key: str, content_type: str = "application/octet-stream"
    ) -> StorageResult:
        client = self._get_client()
        transfer_config = TransferConfig(
            multipart_chunksize=self.config.multipart_chunk_size,
            max_concurrency=4,
        )
        try:
            file_size = os.path.getsize(file_path)
            # upload_file switches to multipart above the threshold, so memory
            # stays bounded by chunk size * concurrency.
            await asyncio.to_thread(
                client.upload_file,
                file_path,
                self.config.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
                Config=transfer_config,
            )
        except (BotoCoreError, ClientError, OSError) as e:
            raise StorageError(f"Could not upload {key}: {e}") from e

        logger.info("Uploaded object", extra={"key": key, "file_size": file_size})
        return StorageResult(key=key, file_size=file_size)

    async def delete(self, key: str) -> bool:
        client = self._get_client()
        try:
            await asyncio.to_thread(
                client.delete_object, Bucket=self.config.bucket, Key=key
            )
            return True
        except (BotoCoreError, ClientError) as e:
            logger.warning("Delete failed", extra={"key": key, "error": str(e)})
            return False

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
