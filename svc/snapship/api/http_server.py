"""
HTTP status server for snapship.

This module exposes the uploader for external introspection and control:
- GET  /v1/health          liveness check
- GET  /v1/status          uploader status and counters
- POST /v1/upload/enable   resume uploads on the next tick
- POST /v1/upload/disable  pause uploads (the next enabled tick always uploads)

Invariants:
    - Handlers never wait on an in-flight upload cycle
    - JSON request/response format

How to change safely:
    - Add fields to /v1/status, don't rename existing ones
    - Version the API if breaking changes are needed
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from aiohttp import web

from ..upload import Uploader, UploadSwitch

logger = logging.getLogger(__name__)


def create_http_app(uploader: Uploader, upload_switch: UploadSwitch) -> web.Application:
    """Create the HTTP application.

    Args:
        uploader: Uploader to report on
        upload_switch: Enablement gate the uploader consults

    Returns:
        aiohttp Application instance
    """
    app = web.Application()

    app.router.add_get("/v1/health", lambda r: handle_health(r, uploader))
    app.router.add_get("/v1/status", lambda r: handle_status(r, uploader, upload_switch))
    app.router.add_post("/v1/upload/enable", lambda r: handle_enable(r, upload_switch))
    app.router.add_post("/v1/upload/disable", lambda r: handle_disable(r, upload_switch))

    @web.middleware
    async def error_middleware(request: web.Request, handler: Callable) -> web.Response:
        try:
            return await handler(request)
        except web.HTTPException:
            raise
        except Exception as e:
            logger.error(f"HTTP handler error: {e}", exc_info=True)
            return web.json_response(
                {"error": str(e), "error_code": "INTERNAL"},
                status=500,
            )

    app.middlewares.append(error_middleware)

    return app


async def handle_health(request: web.Request, uploader: Uploader) -> web.Response:
    """Handle GET /v1/health - Health check."""
    running = uploader.is_running
    return web.json_response(
        {"healthy": running, "uploader_running": running},
        status=200 if running else 503,
    )


async def handle_status(
    request: web.Request, uploader: Uploader, upload_switch: UploadSwitch
) -> web.Response:
    """Handle GET /v1/status - Uploader status and counters."""
    return web.json_response(
        {
            "uploader": uploader.stats(),
            "upload_enabled": upload_switch.enabled,
            "counters": uploader.counters.snapshot(),
        }
    )


async def handle_enable(request: web.Request, upload_switch: UploadSwitch) -> web.Response:
    """Handle POST /v1/upload/enable."""
    upload_switch.enable()
    logger.info("Uploads enabled via HTTP")
    return web.json_response({"upload_enabled": True})


async def handle_disable(request: web.Request, upload_switch: UploadSwitch) -> web.Response:
    """Handle POST /v1/upload/disable."""
    upload_switch.disable()
    logger.info("Uploads disabled via HTTP")
    return web.json_response({"upload_enabled": False})


async def run_http_server(
    uploader: Uploader,
    upload_switch: UploadSwitch,
    host: str = "0.0.0.0",
    port: int = 8081,
) -> None:
    """Run the HTTP server until cancelled.

    Args:
        uploader: Uploader to report on
        upload_switch: Enablement gate the uploader consults
        host: Host to bind to
        port: Port to listen on
    """
    app = create_http_app(uploader, upload_switch)

    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"HTTP server running on http://{host}:{port}")

    # Keep running until cancelled
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await runner.cleanup()
