"""
snapship - Main entry point.

This module starts the service with all components:
- Uploader loop (SQLite snapshot -> storage backend)
- HTTP status server (optional)

Usage:
    python -m svc.snapship.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - Shutdown stops the uploader before closing the storage client
    - An upload failure never stops the service

How to change safely:
    - Add new components with enable/disable flags
    - Test shutdown sequence thoroughly
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import json_log_formatter

from .api import run_http_server
from .config import ServerConfig
from .upload import (
    SQLiteDataProvider,
    StorageClient,
    Uploader,
    UploadSwitch,
    create_storage_client,
)

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


class Server:
    """snapship service orchestrator.

    Manages the lifecycle of all components:
    - Storage client
    - Uploader loop
    - HTTP status server

    Attributes:
        config: Server configuration
        storage_client: Upload destination
        uploader: Uploader service
        upload_switch: Enablement gate consulted by the uploader

    Example:
        >>> server = Server()
        >>> await server.start()
        >>> # Server is running
        >>> await server.stop()
    """

    def __init__(self, config: ServerConfig | None = None) -> None:
        """Initialize the server.

        Args:
            config: Optional server configuration (loaded from env if not provided)
        """
        self.config = config or ServerConfig.from_env()
        self._running = False
        self._shutdown_event = asyncio.Event()

        self.upload_switch = UploadSwitch(enabled=self.config.upload.enabled)

        # Components (initialized in start())
        self.storage_client: StorageClient | None = None
        self.uploader: Uploader | None = None

        # Background tasks
        self._tasks: list[asyncio.Task] = []

    async def start(self) -> None:
        """Start the server and all components."""
        if self._running:
            logger.warning("Server already running")
            return

        logger.info("Starting snapship server")
        self.config.log_config()

        try:
            self.storage_client = create_storage_client(self.config)
            self.uploader = Uploader(
                storage_client=self.storage_client,
                data_provider=SQLiteDataProvider(self.config.source.db_path),
                interval_seconds=self.config.upload.interval_seconds,
                compress=self.config.upload.compress,
                staging_dir=self.config.upload.staging_dir,
            )
            uploader_task = asyncio.create_task(self.uploader.start(self.upload_switch))
            self._tasks.append(uploader_task)

            if self.config.http.enabled:
                http_task = asyncio.create_task(
                    run_http_server(
                        self.uploader,
                        self.upload_switch,
                        host=self.config.http.host,
                        port=self.config.http.port,
                    )
                )
                self._tasks.append(http_task)

            self._running = True
            logger.info("snapship server started successfully")

            # Wait for shutdown signal
            await self._shutdown_event.wait()

        except Exception as e:
            logger.error(f"Server startup failed: {e}", exc_info=True)
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop the server gracefully."""
        if not self._running and not self._tasks:
            return

        logger.info("Stopping snapship server")

        # Let the uploader leave its loop on its own first
        if self.uploader:
            await self.uploader.stop()

        for task in self._tasks:
            task.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        close = getattr(self.storage_client, "close", None)
        if close is not None:
            await close()

        self._running = False
        logger.info("snapship server stopped")

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._shutdown_event.set()


def main() -> None:
    """Main entry point."""
    # Load configuration
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    # Setup logging
    setup_logging(config)

    # Setup signal handlers
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    # Create server
    server = Server(config)

    def handle_signal(sig: int) -> None:
        logger.info(f"Received signal {sig}, initiating shutdown")
        server.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig)

    # Run server
    try:
        loop.run_until_complete(server.start())
    except KeyboardInterrupt:
        pass
    finally:
        loop.run_until_complete(server.stop())
        loop.close()


if __name__ == "__main__":
    main()
