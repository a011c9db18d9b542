"""
In-memory storage client for testing.

This module provides a storage backend that keeps every uploaded payload
in memory, for:
- Unit tests
- Integration tests
- Local development without S3

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with the StorageClient protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import BinaryIO

logger = logging.getLogger(__name__)


class InMemoryStorageClient:
    """In-memory implementation of StorageClient for testing.

    Attributes:
        name: Destination name reported by str()
        uploads: Every successfully stored payload, oldest first
        attempts: Number of upload() calls, including failed ones
        fail_with: If set, upload() raises this exception
        delay_seconds: Artificial latency before storing

    Example:
        >>> client = InMemoryStorageClient()
        >>> await client.upload(io.BytesIO(b"data"))
        >>> client.last_payload
        b'data'
    """

    def __init__(self, name: str = "memory") -> None:
        self.name = name
        self.uploads: list[bytes] = []
        self.attempts = 0
        self.fail_with: Exception | None = None
        self.delay_seconds = 0.0
        self._uploaded = asyncio.Condition()

    async def upload(self, reader: BinaryIO) -> None:
        """Drain reader and store its contents."""
        self.attempts += 1
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.fail_with is not None:
            raise self.fail_with

        data = reader.read()
        async with self._uploaded:
            self.uploads.append(data)
            self._uploaded.notify_all()
        logger.debug(f"Stored {len(data)} bytes in {self.name}")

    def __str__(self) -> str:
        return self.name

    # Testing helpers

    @property
    def upload_count(self) -> int:
        return len(self.uploads)

    @property
    def last_payload(self) -> bytes | None:
        return self.uploads[-1] if self.uploads else None

    def clear(self) -> None:
        """Forget all stored payloads and attempts."""
        self.uploads.clear()
        self.attempts = 0

    async def wait_for_uploads(self, count: int, timeout: float = 5.0) -> bool:
        """Wait until at least count payloads are stored.

        Returns:
            True if reached, False on timeout
        """
        deadline = time.monotonic() + timeout
        async with self._uploaded:
            while len(self.uploads) < count:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                try:
                    await asyncio.wait_for(self._uploaded.wait(), remaining)
                except asyncio.TimeoutError:
                    return len(self.uploads) >= count
        return True
