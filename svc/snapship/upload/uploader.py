"""
Periodic snapshot uploader.

The Uploader runs a fixed-interval loop. On each tick it asks a
DataProvider for a fresh snapshot, optionally gzips it, and uploads it
through a StorageClient unless it is byte-identical to the last snapshot
that was uploaded successfully.

Upload cycle:
    stage temp file -> provide -> compress (optional) -> digest
    -> skip if unchanged -> transmit -> record digest and counters

Invariants:
    - Identical content is never uploaded twice in a row
    - The dedup baseline only advances after a successful upload, so a
      failed upload of some content is retried on the next tick
    - Staged files are removed on every exit path
    - Cycles never overlap; a slow cycle delays the next tick
    - Disabling uploads clears the baseline, so re-enabling always
      uploads once
    - Failures before the dedup decision touch no counter

How to change safely:
    - Keep counter updates in one place per outcome
    - Anything read by stats() must be written under _state_lock
    - Test with InMemoryStorageClient before touching the S3 path
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable, Coroutine
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from .base import (
    DataProvider,
    ProviderError,
    StagingError,
    StorageClient,
    TransmissionError,
    UploadCancelledError,
    UploadError,
)
from .checksum import Digest, file_sha256
from .compress import compress_in_place
from .staging import CountingReader, create_temp, remove_if_exists
from .stats import UploadStats

logger = logging.getLogger(__name__)

UploadGate = Callable[[], bool]


class UploadOutcome(Enum):
    """Result of a cycle that reached the dedup decision."""

    UPLOADED = "uploaded"
    SKIPPED = "skipped"


class UploadSwitch:
    """Settable enablement gate.

    Callable, so it can be passed straight to Uploader.start().
    """

    def __init__(self, enabled: bool = True) -> None:
        self._enabled = threading.Event()
        if enabled:
            self._enabled.set()

    def __call__(self) -> bool:
        return self._enabled.is_set()

    @property
    def enabled(self) -> bool:
        return self._enabled.is_set()

    def enable(self) -> None:
        self._enabled.set()

    def disable(self) -> None:
        self._enabled.clear()


def format_duration(seconds: float) -> str:
    """Render a duration compactly, e.g. "250ms" or "30s"."""
    if seconds == 0:
        return "0s"
    if seconds < 1:
        return f"{seconds * 1000:g}ms"
    return f"{seconds:g}s"


def format_timestamp(value: datetime | None) -> str:
    """Render a UTC timestamp as RFC 3339, or "" if unset."""
    if value is None:
        return ""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class Uploader:
    """Uploads snapshots to a storage backend on a fixed interval.

    Attributes:
        storage_client: Destination for uploads
        data_provider: Producer of snapshot files
        interval_seconds: Time between upload attempts
        compress: Whether snapshots are gzipped before upload
        counters: Upload counters
        disable_sum_check: Testing only; upload even if content is unchanged

    Example:
        >>> uploader = Uploader(client, provider, interval_seconds=30, compress=True)
        >>> task = asyncio.create_task(uploader.start())
        >>> ...
        >>> await uploader.stop()
    """

    def __init__(
        self,
        storage_client: StorageClient,
        data_provider: DataProvider,
        interval_seconds: float,
        compress: bool = True,
        stats: UploadStats | None = None,
        staging_dir: str | None = None,
    ) -> None:
        """Initialize the uploader.

        Args:
            storage_client: StorageClient to upload to
            data_provider: DataProvider producing snapshots
            interval_seconds: Interval between upload attempts
            compress: Gzip snapshots before upload
            stats: Counter set to update (a new one if None)
            staging_dir: Directory for temporary files (system temp if None)
        """
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")

        self.storage_client = storage_client
        self.data_provider = data_provider
        self.interval_seconds = interval_seconds
        self.compress = compress
        self.counters = stats or UploadStats()
        self.staging_dir = staging_dir
        self.disable_sum_check = False

        self._state_lock = threading.Lock()
        self._last_digest: Digest | None = None
        self._last_upload_time: datetime | None = None
        self._last_upload_duration = 0.0

        self._running = False
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def last_digest(self) -> Digest | None:
        with self._state_lock:
            return self._last_digest

    @property
    def last_upload_time(self) -> datetime | None:
        with self._state_lock:
            return self._last_upload_time

    async def start(self, is_upload_enabled: UploadGate | None = None) -> None:
        """Run the upload loop until stop() is called or the task is cancelled.

        Args:
            is_upload_enabled: Gate consulted on every tick; uploads are
                always enabled if None
        """
        if self._running:
            logger.warning("Uploader already running")
            return

        if is_upload_enabled is None:
            is_upload_enabled = lambda: True  # noqa: E731

        # The stop event is never cleared: a stop() issued before this task
        # first runs must still end the loop before the first tick.
        self._running = True
        logger.info(
            f"Starting upload to {self.storage_client} every {format_duration(self.interval_seconds)}",
            extra={
                "destination": str(self.storage_client),
                "interval_seconds": self.interval_seconds,
                "compress": self.compress,
            },
        )

        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.interval_seconds

        try:
            while not await self._wait_for_tick(next_tick):
                next_tick += self.interval_seconds
                await self._tick(is_upload_enabled)
                # Missed ticks collapse into one immediate tick.
                next_tick = max(next_tick, loop.time())

        except asyncio.CancelledError:
            logger.info("Uploader cancelled")
        finally:
            self._running = False
            logger.info("Upload service shutting down")

    async def stop(self) -> None:
        """Stop the upload loop and abort any in-flight transmission.

        Stopping is permanent. If the loop has not started yet, a later
        start() returns without running a tick.
        """
        self._stop_event.set()
        logger.info("Stopping uploader")

    def stats(self) -> dict[str, Any]:
        """Get configuration and last-upload status.

        Safe to call from any thread while a cycle is running.
        """
        with self._state_lock:
            last_time = self._last_upload_time
            last_duration = self._last_upload_duration
            last_digest = self._last_digest

        return {
            "upload_destination": str(self.storage_client),
            "upload_interval": format_duration(self.interval_seconds),
            "compress": self.compress,
            "last_upload_time": format_timestamp(last_time),
            "last_upload_duration": format_duration(last_duration),
            "last_upload_sum": last_digest.hex() if last_digest else "",
        }

    async def _wait_for_tick(self, deadline: float) -> bool:
        """Sleep until deadline. Returns True if stopped in the meantime."""
        if self._stop_event.is_set():
            return True
        timeout = max(0.0, deadline - asyncio.get_running_loop().time())
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def _tick(self, is_upload_enabled: UploadGate) -> None:
        """Handle one timer tick."""
        try:
            if not is_upload_enabled():
                # We don't know what happened while disabled, so force the
                # next enabled tick to upload.
                self._reset_last_digest()
                return

            await self.upload_once()

        except UploadError as e:
            logger.error(
                f"Failed to upload to {self.storage_client}: {e}",
                extra={"destination": str(self.storage_client)},
            )
        except Exception as e:
            logger.error(
                f"Unexpected upload error for {self.storage_client}: {e}",
                exc_info=True,
                extra={"destination": str(self.storage_client)},
            )

    def _reset_last_digest(self) -> None:
        with self._state_lock:
            self._last_digest = None

    async def upload_once(self) -> UploadOutcome:
        """Run one upload cycle.

        Returns:
            UPLOADED or SKIPPED

        Raises:
            StagingError: Temporary file could not be created
            ProviderError: The data provider failed
            CompressionError: Compression failed
            DigestError: The staged file could not be checksummed
            TransmissionError: The storage backend failed (counted)
        """
        loop = asyncio.get_running_loop()
        staged = create_temp(directory=self.staging_dir)

        try:
            try:
                await loop.run_in_executor(None, self.data_provider.provide, str(staged))
            except Exception as e:
                raise ProviderError(f"Data provider failed: {e}") from e

            if self.compress:
                await loop.run_in_executor(None, compress_in_place, staged)

            digest = await loop.run_in_executor(None, file_sha256, staged)

            if not self.disable_sum_check and digest == self.last_digest:
                self.counters.record_skip()
                logger.debug(
                    "Snapshot unchanged, skipping upload",
                    extra={"destination": str(self.storage_client), "checksum": digest.hex()},
                )
                return UploadOutcome.SKIPPED

            return await self._transmit(staged, digest)

        finally:
            try:
                remove_if_exists(staged)
            except StagingError as e:
                logger.warning(f"Failed to clean up staged file: {e}")

    async def _transmit(self, staged: Path, digest: Digest) -> UploadOutcome:
        """Upload the staged file and record the outcome."""
        try:
            f = open(staged, "rb")
        except OSError as e:
            raise StagingError(f"Failed to open staged file {staged}: {e}") from e

        with f:
            reader = CountingReader(f)
            start_time = time.monotonic()
            try:
                await self._run_cancellable(self.storage_client.upload(reader))
            except Exception as e:
                self.counters.record_failure()
                if isinstance(e, TransmissionError):
                    raise
                raise TransmissionError(str(e)) from e
            duration = time.monotonic() - start_time

        with self._state_lock:
            self._last_digest = digest
            self._last_upload_time = datetime.now(timezone.utc)
            self._last_upload_duration = duration
        self.counters.record_success(reader.count)

        logger.info(
            f"Uploaded {reader.count} bytes to {self.storage_client}",
            extra={
                "destination": str(self.storage_client),
                "size_bytes": reader.count,
                "duration_seconds": duration,
                "checksum": digest.hex(),
            },
        )
        return UploadOutcome.UPLOADED

    async def _run_cancellable(self, coro: Coroutine[Any, Any, None]) -> None:
        """Await coro, cancelling it if stop() is called first."""
        upload_task = asyncio.ensure_future(coro)
        stop_task = asyncio.ensure_future(self._stop_event.wait())
        try:
            await asyncio.wait({upload_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
            if not upload_task.done():
                raise UploadCancelledError("upload cancelled, service stopping")
            upload_task.result()
        finally:
            stop_task.cancel()
            if not upload_task.done():
                upload_task.cancel()
                await asyncio.gather(upload_task, return_exceptions=True)
