"""
Integration tests for the Server orchestrator.

Runs the full service against a real SQLite database and the in-memory
storage backend.
"""

import asyncio
import gzip
import logging
import sqlite3
import tempfile
from pathlib import Path

import json_log_formatter
import pytest

from svc.snapship.config import (
    HttpConfig,
    ObservabilityConfig,
    ServerConfig,
    SourceConfig,
    StorageBackend,
    UploadConfig,
)
from svc.snapship.main import Server, setup_logging
from tests.fakes import wait_until


class TestServer:
    """Tests for Server."""

    @pytest.fixture
    def data_dir(self):
        """Create temporary data directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    @pytest.fixture
    def config(self, data_dir):
        db_path = data_dir / "app.db"
        conn = sqlite3.connect(db_path)
        conn.execute("CREATE TABLE kv (k TEXT PRIMARY KEY, v TEXT)")
        conn.execute("INSERT INTO kv VALUES ('a', '1')")
        conn.commit()
        conn.close()

        staging = data_dir / "staging"
        staging.mkdir()
        return ServerConfig(
            upload=UploadConfig(
                interval_seconds=0.02,
                compress=True,
                backend=StorageBackend.MEMORY,
                staging_dir=str(staging),
            ),
            source=SourceConfig(db_path=str(db_path)),
            http=HttpConfig(enabled=False),
        )

    @pytest.mark.asyncio
    async def test_uploads_sqlite_snapshot(self, config, data_dir):
        server = Server(config)
        task = asyncio.create_task(server.start())

        try:
            assert await wait_until(
                lambda: server.uploader is not None and server.uploader.counters.skipped >= 1
            )
        finally:
            server.request_shutdown()
            await asyncio.wait_for(task, timeout=2)
            await server.stop()

        client = server.storage_client
        # Unchanged database: one upload, then skips.
        assert client.upload_count == 1
        snapshot = gzip.decompress(client.last_payload)
        assert snapshot.startswith(b"SQLite format 3\x00")
        assert list((data_dir / "staging").iterdir()) == []

    @pytest.mark.asyncio
    async def test_starts_disabled(self, config):
        config.upload = UploadConfig(
            enabled=False,
            interval_seconds=0.02,
            backend=StorageBackend.MEMORY,
            staging_dir=config.upload.staging_dir,
        )
        server = Server(config)
        task = asyncio.create_task(server.start())

        try:
            assert await wait_until(lambda: server.uploader is not None and server.uploader.is_running)
            await asyncio.sleep(0.1)
            assert server.storage_client.attempts == 0

            server.upload_switch.enable()
            assert await server.storage_client.wait_for_uploads(1, timeout=2)
        finally:
            server.request_shutdown()
            await asyncio.wait_for(task, timeout=2)
            await server.stop()


def test_setup_logging_json():
    config = ServerConfig(observability=ObservabilityConfig(log_level="debug", log_format="json"))
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging(config)
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)


def test_setup_logging_text():
    config = ServerConfig(observability=ObservabilityConfig(log_level="WARNING", log_format="text"))
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging(config)
        assert root.level == logging.WARNING
        assert not isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)
