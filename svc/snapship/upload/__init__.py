"""
Upload module for snapship.

This module periodically uploads application snapshots to remote storage:
- Snapshot production via pluggable DataProviders
- Optional gzip compression
- SHA-256 dedup against the last successful upload
- Pluggable StorageClients (S3, in-memory)

Invariants:
    - Identical consecutive snapshots are uploaded once
    - Staged temporary files never outlive a cycle
"""

from .base import (
    CompressionError,
    DataProvider,
    DigestError,
    ProviderError,
    StagingError,
    StorageClient,
    TransmissionError,
    UploadCancelledError,
    UploadError,
    create_storage_client,
)
from .checksum import Digest, file_sha256
from .compress import compress_in_place
from .memory import InMemoryStorageClient
from .providers import FileDataProvider, SQLiteDataProvider
from .s3 import S3StorageClient
from .staging import CountingReader, create_temp, remove_if_exists
from .stats import UploadStats
from .uploader import Uploader, UploadOutcome, UploadSwitch

__all__ = [
    # Protocols and errors
    "StorageClient",
    "DataProvider",
    "UploadError",
    "StagingError",
    "ProviderError",
    "CompressionError",
    "DigestError",
    "TransmissionError",
    "UploadCancelledError",
    # Factory
    "create_storage_client",
    # Pipeline
    "Uploader",
    "UploadOutcome",
    "UploadSwitch",
    "UploadStats",
    "Digest",
    "file_sha256",
    "compress_in_place",
    "CountingReader",
    "create_temp",
    "remove_if_exists",
    # Implementations
    "S3StorageClient",
    "InMemoryStorageClient",
    "SQLiteDataProvider",
    "FileDataProvider",
]
