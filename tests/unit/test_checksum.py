"""
Unit tests for file digests.
"""

import hashlib
import tempfile
from pathlib import Path

import pytest

from svc.snapship.upload.base import DigestError
from svc.snapship.upload.checksum import Digest, file_sha256


class TestFileSha256:
    """Tests for file_sha256."""

    @pytest.fixture
    def data_dir(self):
        """Create temporary data directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    def test_empty_file(self, data_dir):
        """Empty file hashes to the well-known SHA-256 of nothing."""
        path = data_dir / "empty"
        path.write_bytes(b"")

        assert file_sha256(path).hex() == hashlib.sha256(b"").hexdigest()

    def test_identical_files_equal(self, data_dir):
        """Byte-identical files produce equal digests."""
        a = data_dir / "a"
        b = data_dir / "b"
        a.write_bytes(b"snapshot contents")
        b.write_bytes(b"snapshot contents")

        assert file_sha256(a) == file_sha256(b)

    def test_single_byte_difference(self, data_dir):
        """Any byte difference changes the digest."""
        a = data_dir / "a"
        b = data_dir / "b"
        a.write_bytes(b"snapshot contents")
        b.write_bytes(b"snapshot contentz")

        assert file_sha256(a) != file_sha256(b)

    def test_order_sensitive(self, data_dir):
        """Same bytes in a different order hash differently."""
        a = data_dir / "a"
        b = data_dir / "b"
        a.write_bytes(b"ab")
        b.write_bytes(b"ba")

        assert file_sha256(a) != file_sha256(b)

    def test_large_file_spans_chunks(self, data_dir):
        """Files larger than one read chunk are hashed whole."""
        data = bytes(range(256)) * 1024
        path = data_dir / "large"
        path.write_bytes(data)

        assert file_sha256(path).value == hashlib.sha256(data).digest()

    def test_missing_file(self, data_dir):
        """Unreadable path raises DigestError."""
        with pytest.raises(DigestError):
            file_sha256(data_dir / "missing")


class TestDigest:
    """Tests for the Digest value type."""

    def test_hex_rendering(self):
        digest = Digest(hashlib.sha256(b"x").digest())
        assert str(digest) == hashlib.sha256(b"x").hexdigest()
        assert Digest.from_hex(digest.hex()) == digest

    def test_never_equals_none(self):
        assert Digest(b"\x00" * 32) != None  # noqa: E711
