"""
Upload counters.

UploadStats is owned by an Uploader instance (or handed to it at
construction) and incremented from the upload loop while being read from
status handlers on other threads, so every access goes through a lock.
"""

from __future__ import annotations

import threading

NUM_UPLOADS_OK = "num_uploads_ok"
NUM_UPLOADS_FAIL = "num_uploads_fail"
NUM_UPLOADS_SKIPPED = "num_uploads_skipped"
TOTAL_UPLOAD_BYTES = "total_upload_bytes"
LAST_UPLOAD_BYTES = "last_upload_bytes"

COUNTER_NAMES = (
    NUM_UPLOADS_OK,
    NUM_UPLOADS_FAIL,
    NUM_UPLOADS_SKIPPED,
    TOTAL_UPLOAD_BYTES,
    LAST_UPLOAD_BYTES,
)


class UploadStats:
    """Thread-safe upload counters.

    Invariant:
        ok + fail + skipped equals the number of cycles that reached the
        dedup decision.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._values: dict[str, int] = {name: 0 for name in COUNTER_NAMES}

    def record_success(self, num_bytes: int) -> None:
        with self._lock:
            self._values[NUM_UPLOADS_OK] += 1
            self._values[TOTAL_UPLOAD_BYTES] += num_bytes
            self._values[LAST_UPLOAD_BYTES] = num_bytes

    def record_failure(self) -> None:
        with self._lock:
            self._values[NUM_UPLOADS_FAIL] += 1

    def record_skip(self) -> None:
        with self._lock:
            self._values[NUM_UPLOADS_SKIPPED] += 1

    def get(self, name: str) -> int:
        with self._lock:
            return self._values[name]

    def snapshot(self) -> dict[str, int]:
        """Return a consistent copy of all counters."""
        with self._lock:
            return dict(self._values)

    @property
    def ok(self) -> int:
        return self.get(NUM_UPLOADS_OK)

    @property
    def failed(self) -> int:
        return self.get(NUM_UPLOADS_FAIL)

    @property
    def skipped(self) -> int:
        return self.get(NUM_UPLOADS_SKIPPED)
