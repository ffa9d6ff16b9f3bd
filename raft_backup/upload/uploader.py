"""
S3 uploader for staged Raft snapshots.

Object key format:
    s3://<bucket>/<prefix>-<basename(staging path)>

Distinct staging paths therefore never collide under the same bucket and
prefix.

Invariants:
    - Exactly one put per run, no retry
    - The body is streamed from the open file, never read into memory whole
    - A single PutObject is capped by S3 at 5 GiB; larger snapshots are
      refused before any request is sent
    - The staging file is opened for reading and closed by the uploader
    - Any client error (auth, network, quota, bucket policy) fails the run
    - No checksum comparison beyond what S3 itself enforces

How to change safely:
    - Keep the key format stable; existing backups are found by it
    - Test against MinIO (S3_ENDPOINT) before changing client options
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import IO, Any
from urllib.parse import quote

from aiobotocore.session import AioSession, get_session
from botocore.exceptions import BotoCoreError, ClientError

from ..config import TransferConfig
from ..errors import STAGE_UPLOAD, UploadOpenError, UploadTransferError
from ..fileio import scoped_file

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/octet-stream"

# S3 rejects a single PutObject larger than this
MAX_PUT_BYTES = 5 * 1024**3


@dataclass(frozen=True)
class UploadLocation:
    """Where an uploaded snapshot landed.

    Attributes:
        bucket: S3 bucket name
        key: S3 object key
        region: Bucket region
        endpoint_url: Custom endpoint, if any
        etag: ETag returned by S3
        version_id: Object version (versioned buckets only)
    """

    bucket: str
    key: str
    region: str
    endpoint_url: str | None = None
    etag: str | None = None
    version_id: str | None = None

    @property
    def s3_uri(self) -> str:
        """``s3://bucket/key`` with the key exactly as stored."""
        return f"s3://{self.bucket}/{self.key}"

    @property
    def url(self) -> str:
        """Addressable URL of the uploaded object (key percent-encoded)."""
        key = quote(self.key)
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def __str__(self) -> str:
        return self.s3_uri


def build_key(prefix: str, path: str) -> str:
    """Derive the object key for a staging file."""
    return f"{prefix}-{os.path.basename(path)}"


class SnapshotUploader:
    """Uploads a staged snapshot file to S3.

    The S3 client is async (aiobotocore); upload() drives it to completion
    on a private event loop so callers stay synchronous.

    Attributes:
        config: S3 destination configuration

    Example:
        >>> uploader = SnapshotUploader(TransferConfig.from_env())
        >>> location = uploader.upload("/var/backups/vault.snap")
        >>> print(location.url)
    """

    def __init__(self, config: TransferConfig, session: AioSession | None = None) -> None:
        """Initialize the uploader.

        Args:
            config: S3 destination configuration
            session: aiobotocore session (a new one by default)
        """
        self.config = config
        self._session = session

    def build_key(self, path: str) -> str:
        """Derive the object key for ``path`` under the configured prefix."""
        return build_key(self.config.prefix, path)

    def upload(self, path: str) -> UploadLocation:
        """Upload the staging file at ``path``.

        Args:
            path: Path of a complete, closed snapshot file

        Returns:
            UploadLocation of the new object

        Raises:
            UploadOpenError: If the file cannot be opened for reading
            UploadTransferError: If the S3 put fails or the file exceeds MAX_PUT_BYTES
            ResourceCloseError: If the file cannot be closed
        """
        key = self.build_key(path)
        start_time = time.time()

        with scoped_file(path, "rb", UploadOpenError, STAGE_UPLOAD) as body:
            size = os.fstat(body.fileno()).st_size
            self._check_size(key, size)
            response = asyncio.run(self._put_object(key, body, size))

        location = UploadLocation(
            bucket=self.config.bucket,
            key=key,
            region=self.config.region,
            endpoint_url=self.config.endpoint_url,
            etag=response.get("ETag"),
            version_id=response.get("VersionId"),
        )
        logger.info(
            "Uploaded snapshot",
            extra={
                "bucket": location.bucket,
                "s3_key": location.key,
                "etag": location.etag,
                "size_bytes": size,
                "duration_ms": int((time.time() - start_time) * 1000),
            },
        )
        return location

    def _client_kwargs(self) -> dict[str, Any]:
        client_kwargs: dict[str, Any] = {"region_name": self.config.region}
        if self.config.endpoint_url:
            client_kwargs["endpoint_url"] = self.config.endpoint_url
        return client_kwargs

    def _check_size(self, key: str, size: int) -> None:
        if size <= MAX_PUT_BYTES:
            return
        bucket = self.config.bucket
        logger.error(
            f"Vault backup is too large for a single S3 put to bucket {bucket}",
            extra={"bucket": bucket, "s3_key": key, "size_bytes": size, "limit": MAX_PUT_BYTES},
        )
        raise UploadTransferError(
            f"Vault backup is too large for a single S3 put to bucket {bucket}: "
            f"{size} bytes exceeds {MAX_PUT_BYTES}",
            bucket=bucket,
            key=key,
        )

    async def _put_object(self, key: str, body: IO[bytes], size: int) -> dict[str, Any]:
        """Stream ``body`` to ``key`` with a single request."""
        session = self._session or get_session()
        bucket = self.config.bucket

        try:
            async with session.create_client("s3", **self._client_kwargs()) as s3:
                return await s3.put_object(
                    Bucket=bucket,
                    Key=key,
                    Body=body,
                    ContentLength=size,
                    ContentType=CONTENT_TYPE,
                )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                f"Vault backup failed to upload to S3 bucket {bucket}",
                extra={"bucket": bucket, "s3_key": key, "error": str(e)},
            )
            raise UploadTransferError(
                f"Vault backup failed to upload to S3 bucket {bucket}: {e}",
                bucket=bucket,
                key=key,
            ) from e
