"""
Temporary file staging and byte counting for uploads.

Every upload cycle stages its data in a uniquely named temporary file and
removes it on every exit path. The bytes actually handed to the storage
backend are measured with CountingReader.
"""

from __future__ import annotations

import io
import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO

from .base import StagingError

logger = logging.getLogger(__name__)

TEMP_PREFIX = "snapship-upload-"


def create_temp(prefix: str = TEMP_PREFIX, directory: str | None = None) -> Path:
    """Create a new, empty, uniquely named file.

    Args:
        prefix: File name prefix
        directory: Scratch directory (system temp dir if None)

    Returns:
        Path to the created file. The caller owns cleanup.

    Raises:
        StagingError: If the file cannot be created
    """
    try:
        fd, name = tempfile.mkstemp(prefix=prefix, dir=directory)
    except OSError as e:
        raise StagingError(f"Failed to create temporary file: {e}") from e
    os.close(fd)
    return Path(name)


def remove_if_exists(path: str | Path) -> None:
    """Delete path, succeeding silently if it is already gone.

    Raises:
        StagingError: If the path exists but cannot be removed
    """
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        raise StagingError(f"Failed to remove {path}: {e}") from e


class CountingReader(io.RawIOBase):
    """Binary reader that counts the bytes passed through it.

    The data is not altered. Read count only after the wrapped stream has
    been drained.

    Example:
        >>> with open(path, "rb") as f:
        ...     reader = CountingReader(f)
        ...     await client.upload(reader)
        ...     print(reader.count)
    """

    def __init__(self, reader: BinaryIO) -> None:
        super().__init__()
        self._reader = reader
        self.count = 0

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        data = self._reader.read(size)
        self.count += len(data)
        return data

    def readall(self) -> bytes:
        return self.read(-1)

    def read1(self, size: int = -1) -> bytes:
        return self.read(size)

    def readinto(self, buffer) -> int:
        data = self._reader.read(len(buffer))
        n = len(data)
        buffer[:n] = data
        self.count += n
        return n
