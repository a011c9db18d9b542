"""
Base protocols and errors for the upload pipeline.

This module defines the two capabilities the Uploader consumes:
- StorageClient: accepts a byte stream and stores it remotely
- DataProvider: materializes current application state into a file

and the exception hierarchy used by every stage of an upload cycle.

Invariants:
    - StorageClient.upload() either fully consumes the stream or raises
    - DataProvider.provide() leaves a complete artifact at the given path
    - Every per-cycle failure is an UploadError subclass

How to change safely:
    - Protocol changes require updating all implementations
    - New error kinds must subclass UploadError so the scheduler logs them
"""

from __future__ import annotations

from typing import (
    BinaryIO,
    Protocol,
    runtime_checkable,
    TYPE_CHECKING,
)
import logging

if TYPE_CHECKING:
    from ..config import ServerConfig

logger = logging.getLogger(__name__)


class UploadError(Exception):
    """Base exception for upload cycle failures."""
    pass


class StagingError(UploadError):
    """Temporary file could not be created or removed."""
    pass


class ProviderError(UploadError):
    """The data provider failed to produce a snapshot."""
    pass


class CompressionError(UploadError):
    """The staged file could not be compressed."""
    pass


class DigestError(UploadError):
    """The staged file could not be read for checksumming."""
    pass


class TransmissionError(UploadError):
    """The storage backend rejected or failed the upload."""
    pass


class UploadCancelledError(TransmissionError):
    """An in-flight upload was aborted because the service is stopping."""
    pass


@runtime_checkable
class StorageClient(Protocol):
    """Protocol for remote storage backends.

    Implementations receive a readable binary stream of unknown (possibly
    zero) length. str() of the client names the destination and is used in
    logs and status output.

    Example:
        >>> client = S3StorageClient(s3_config)
        >>> with open(path, "rb") as f:
        ...     await client.upload(f)
        >>> print(f"uploaded to {client}")
    """

    async def upload(self, reader: BinaryIO) -> None:
        """Upload everything readable from reader.

        Args:
            reader: Binary stream positioned at the start of the data

        Raises:
            Exception: Any failure; the caller counts it as a failed upload
        """
        ...

    def __str__(self) -> str:
        ...


@runtime_checkable
class DataProvider(Protocol):
    """Protocol for snapshot producers.

    provide() is called from an executor thread and may block.
    """

    def provide(self, path: str) -> None:
        """Write the data to be uploaded to path.

        Args:
            path: Existing, empty file owned by the caller

        Raises:
            Exception: Any failure; the cycle is aborted uncounted
        """
        ...


def create_storage_client(config: "ServerConfig") -> StorageClient:
    """Factory function to create a storage client from configuration.

    Args:
        config: Server configuration

    Returns:
        Appropriate StorageClient implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import StorageBackend
    from .memory import InMemoryStorageClient
    from .s3 import S3StorageClient

    if config.upload.backend == StorageBackend.S3:
        return S3StorageClient(config.s3, compressed=config.upload.compress)
    elif config.upload.backend == StorageBackend.MEMORY:
        return InMemoryStorageClient()
    else:
        raise ValueError(f"Unsupported storage backend: {config.upload.backend}")
