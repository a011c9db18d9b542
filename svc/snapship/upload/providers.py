"""
Data providers that materialize application state for upload.

Providers run in an executor thread and write the complete snapshot to the
path they are given. They must raise rather than report success after
writing partial output.
"""

from __future__ import annotations

import logging
import shutil
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)


class SQLiteDataProvider:
    """Snapshots a SQLite database with the online backup API.

    The backup is consistent even while other connections are writing.

    Attributes:
        db_path: Database to snapshot
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)

    def provide(self, path: str) -> None:
        if not self.db_path.exists():
            raise FileNotFoundError(f"Database not found: {self.db_path}")

        # Open read-only so a missing file is never silently created.
        source_conn = sqlite3.connect(f"file:{self.db_path}?mode=ro", uri=True)
        dest_conn = sqlite3.connect(path)

        try:
            source_conn.backup(dest_conn)
        finally:
            source_conn.close()
            dest_conn.close()

    def __repr__(self) -> str:
        return f"SQLiteDataProvider({str(self.db_path)!r})"


class FileDataProvider:
    """Copies a plain file byte for byte."""

    def __init__(self, source_path: str | Path) -> None:
        self.source_path = Path(source_path)

    def provide(self, path: str) -> None:
        with open(self.source_path, "rb") as src, open(path, "wb") as dst:
            shutil.copyfileobj(src, dst)

    def __repr__(self) -> str:
        return f"FileDataProvider({str(self.source_path)!r})"
