"""
snapship test suite.

This package contains:
- unit/: Unit tests (no external services)
- integration/: Upload loop, HTTP API and server wiring with in-memory storage
"""
