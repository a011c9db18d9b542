"""
snapship - periodic, deduplicating snapshot uploader.

This package keeps an off-site copy of application state current:
- A DataProvider materializes a snapshot (e.g. a SQLite backup) to a file
- The file is optionally gzipped and checksummed
- Unchanged snapshots are skipped; changed ones go to a StorageClient (S3)

Architecture:
    ┌──────────┐   tick   ┌──────────┐  provide  ┌──────────────┐
    │  Ticker  │─────────▶│ Uploader │──────────▶│ DataProvider │
    └──────────┘          └────┬─────┘           └──────────────┘
                               │ gzip + sha256
                               ▼
                        ┌──────────────┐  changed  ┌───────────────┐
                        │ dedup check  │──────────▶│ StorageClient │
                        └──────────────┘           └───────────────┘

Invariants:
    - The same content is never uploaded twice in a row
    - Temporary files never outlive an upload cycle
    - Upload failures are counted and retried on the next tick

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
