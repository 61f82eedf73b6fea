"""Processed-image store.

The store is write-once per id: a record and its bytes are put together
after a successful pipeline run and never modified.  Records older than
the retention window are treated as absent and removed by
:meth:`ImageStore.purge_expired`.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Protocol, runtime_checkable

from photobooth.models import ProcessedImageRecord
from photobooth.observability import get_logger

log = get_logger("photobooth.service")

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@runtime_checkable
class ImageStore(Protocol):
    """Protocol that any processed-image backend must satisfy."""

    def put(self, record: ProcessedImageRecord, data: bytes) -> None:
        """Store *record* and its bytes.  Raises ``ValueError`` on a duplicate id."""
        ...

    def get(self, image_id: str) -> ProcessedImageRecord | None:
        """Return the live record for *image_id*, or ``None``."""
        ...

    def get_bytes(self, image_id: str) -> bytes | None:
        """Return the stored bytes for *image_id*, or ``None``."""
        ...

    def list(self) -> list[ProcessedImageRecord]:
        """Return every live record, newest first."""
        ...

    def purge_expired(self, now: datetime | None = None) -> int:
        """Delete expired records and return how many were removed."""
        ...


class InMemoryImageStore:
    """Thread-safe dict-backed :class:`ImageStore`.

    Parameters
    ----------
    retention:
        How long a record stays retrievable.  Defaults to 24 hours.
    clock:
        Returns the current aware UTC time.  Injected by tests.
    """

    def __init__(
        self,
        retention: timedelta = timedelta(hours=24),
        clock: Clock | None = None,
    ) -> None:
        if retention <= timedelta(0):
            raise ValueError(f"retention must be positive, got {retention}")
        self.retention = retention
        self._clock = clock or _utcnow
        self._records: dict[str, tuple[ProcessedImageRecord, bytes]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def put(self, record: ProcessedImageRecord, data: bytes) -> None:
        with self._lock:
            if record.id in self._records:
                raise ValueError(f"Image id {record.id!r} already stored")
            self._records[record.id] = (record, bytes(data))

    def get(self, image_id: str) -> ProcessedImageRecord | None:
        entry = self._live(image_id)
        return entry[0] if entry else None

    def get_bytes(self, image_id: str) -> bytes | None:
        entry = self._live(image_id)
        return entry[1] if entry else None

    def list(self) -> list[ProcessedImageRecord]:
        now = self._clock()
        with self._lock:
            records = [
                record
                for record, _ in self._records.values()
                if not self._expired(record, now)
            ]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def purge_expired(self, now: datetime | None = None) -> int:
        now = now or self._clock()
        with self._lock:
            expired = [
                image_id
                for image_id, (record, _) in self._records.items()
                if self._expired(record, now)
            ]
            for image_id in expired:
                del self._records[image_id]
        if expired:
            log.info(
                "Purged expired images",
                extra={"extra_fields": {"op": "purge", "deleted": len(expired)}},
            )
        return len(expired)

    def _live(self, image_id: str) -> tuple[ProcessedImageRecord, bytes] | None:
        with self._lock:
            entry = self._records.get(image_id)
        if entry is None or self._expired(entry[0], self._clock()):
            return None
        return entry

    def _expired(self, record: ProcessedImageRecord, now: datetime) -> bool:
        return now - record.created_at >= self.retention
