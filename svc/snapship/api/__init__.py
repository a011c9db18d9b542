"""
API module for snapship.

This module provides the external status interface:
- HTTP server (status, health, upload enable/disable)

How to change safely:
    - Add new endpoints, don't modify existing ones
"""

from .http_server import create_http_app, run_http_server

__all__ = [
    "create_http_app",
    "run_http_server",
]
