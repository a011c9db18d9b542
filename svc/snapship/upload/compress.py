"""
In-place gzip compression of staged upload files.

The compressed output is written to its own temporary file next to the
source and then renamed over it, so callers keep working with a single
stable path whether or not compression ran.

Invariants:
    - The source file is never written to directly
    - On failure the source is left intact and no temp output remains
    - Identical input produces identical output (mtime fixed, no filename)
"""

from __future__ import annotations

import gzip
import logging
import os
import shutil
from pathlib import Path

from .base import CompressionError, StagingError
from .staging import create_temp, remove_if_exists

logger = logging.getLogger(__name__)

COPY_BUFFER_SIZE = 1024 * 1024


def compress_in_place(path: str | Path, compresslevel: int = 9) -> Path:
    """Replace path with a gzip-compressed copy of itself.

    Args:
        path: File to compress
        compresslevel: gzip compression level (1-9)

    Returns:
        The (unchanged) path, now holding compressed data

    Raises:
        CompressionError: If reading, writing or renaming fails
    """
    path = Path(path)
    try:
        compressed = create_temp(prefix=f".{path.name}.", directory=str(path.parent))
    except StagingError as e:
        raise CompressionError(f"Failed to stage compressed output: {e}") from e

    try:
        compress_file(path, compressed, compresslevel=compresslevel)
        os.replace(compressed, path)
    except (OSError, EOFError, gzip.BadGzipFile) as e:
        raise CompressionError(f"Failed to compress {path}: {e}") from e
    finally:
        try:
            remove_if_exists(compressed)
        except StagingError as e:
            logger.warning(f"Failed to clean up compressed output: {e}")

    return path


def compress_file(source: str | Path, dest: str | Path, compresslevel: int = 9) -> None:
    """Compress source into dest with gzip."""
    with open(source, "rb") as f_in, open(dest, "wb") as raw_out:
        with gzip.GzipFile(
            filename="",
            mode="wb",
            fileobj=raw_out,
            compresslevel=compresslevel,
            mtime=0,
        ) as f_out:
            shutil.copyfileobj(f_in, f_out, length=COPY_BUFFER_SIZE)
