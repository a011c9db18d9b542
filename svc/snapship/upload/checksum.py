"""
Content digests for staged upload files.

A Digest is the SHA-256 of a whole file. The Uploader keeps the digest of
the last successfully uploaded artifact and compares each new snapshot
against it to skip unchanged data.

Invariants:
    - Byte-identical files always produce equal digests
    - Digests are computed from the file as it will be transmitted
      (i.e. after compression)
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path

from .base import DigestError

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class Digest:
    """SHA-256 content fingerprint.

    Attributes:
        value: Raw 32-byte digest
    """

    value: bytes

    @classmethod
    def from_hex(cls, text: str) -> Digest:
        """Parse a digest rendered by hex()."""
        return cls(bytes.fromhex(text))

    def hex(self) -> str:
        return self.value.hex()

    def __str__(self) -> str:
        return self.hex()


def file_sha256(path: str | Path) -> Digest:
    """Compute the SHA-256 digest of a file.

    Args:
        path: File to read

    Returns:
        Digest of the file's full contents

    Raises:
        DigestError: If the file cannot be read
    """
    sha256 = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                sha256.update(chunk)
    except OSError as e:
        raise DigestError(f"Failed to checksum {path}: {e}") from e
    return Digest(sha256.digest())
