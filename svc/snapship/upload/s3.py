"""
S3 storage client.

Uploads each snapshot to a single fixed object key, overwriting the
previous one. Retention and versioning are left to the bucket
configuration.

Upload format:
    s3://<bucket>/<key>        (".gz" appended to key when compressing)

How to change safely:
    - Keep the key stable; restore tooling reads it
    - Test against MinIO (S3_ENDPOINT) before changing client options
"""

from __future__ import annotations

import logging
from typing import Any, BinaryIO

from aiobotocore.session import get_session

logger = logging.getLogger(__name__)


class S3StorageClient:
    """StorageClient backed by S3 (or any S3-compatible endpoint).

    The client is opened lazily on first upload and kept open until
    close() is called.

    Attributes:
        s3_config: S3Config instance
        key: Object key uploads are written to

    Example:
        >>> client = S3StorageClient(s3_config, compressed=True)
        >>> with open(path, "rb") as f:
        ...     await client.upload(f)
        >>> await client.close()
    """

    def __init__(self, s3_config: Any, compressed: bool = False) -> None:
        """Initialize the client.

        Args:
            s3_config: S3Config instance
            compressed: Whether payloads are gzipped (affects key and content type)
        """
        self.s3_config = s3_config
        self.compressed = compressed

        key = s3_config.key
        if compressed and not key.endswith(".gz"):
            key += ".gz"
        self.key = key

        self._session = None
        self._s3_ctx = None
        self._s3_client = None

    async def _init_s3_client(self) -> None:
        """Initialize S3 client."""
        self._session = get_session()

        client_kwargs = {
            "region_name": self.s3_config.region,
        }

        if self.s3_config.endpoint_url:
            client_kwargs["endpoint_url"] = self.s3_config.endpoint_url

        if self.s3_config.access_key_id:
            client_kwargs["aws_access_key_id"] = self.s3_config.access_key_id
            client_kwargs["aws_secret_access_key"] = self.s3_config.secret_access_key

        self._s3_ctx = self._session.create_client("s3", **client_kwargs)
        self._s3_client = await self._s3_ctx.__aenter__()

    async def close(self) -> None:
        """Close S3 client."""
        if self._s3_client:
            await self._s3_ctx.__aexit__(None, None, None)
            self._s3_client = None

    async def upload(self, reader: BinaryIO) -> None:
        """Upload the full contents of reader to the configured key."""
        if not self._s3_client:
            await self._init_s3_client()

        body = reader.read()
        await self._s3_client.put_object(
            Bucket=self.s3_config.bucket,
            Key=self.key,
            Body=body,
            ContentType="application/gzip" if self.compressed else "application/octet-stream",
        )
        logger.debug(
            "Uploaded object",
            extra={"bucket": self.s3_config.bucket, "s3_key": self.key, "size_bytes": len(body)},
        )

    def __str__(self) -> str:
        return f"s3://{self.s3_config.bucket}/{self.key}"
