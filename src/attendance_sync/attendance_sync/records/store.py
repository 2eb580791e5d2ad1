from __future__ import annotations

import json
from dataclasses import replace
from typing import Any, Mapping, Optional, Sequence

from ..common.logging import get_logger
from ..core.constants import STORAGE_KEY
from ..core.exceptions import LocalPersistenceFailure, ValidationError
from .model import AttendanceRecord
from .storage import KeyValueStorage

logger = get_logger(__name__)

_IMMUTABLE_FIELDS = frozenset({"id", "timestamp"})


class RecordStore:
    """Ordered, durable log of attendance records.

    The in-memory sequence is authoritative for the running process; every
    mutation rewrites the whole blob under one storage key.
    """

    def __init__(self, storage: KeyValueStorage, *, key: str = STORAGE_KEY):
        self._storage = storage
        self._key = key
        self._records: list[AttendanceRecord] = []

    @property
    def records(self) -> tuple[AttendanceRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def get(self, record_id: str) -> Optional[AttendanceRecord]:
        for r in self._records:
            if r.id == record_id:
                return r
        return None

    def load(self) -> Sequence[AttendanceRecord]:
        """Hydrate from storage. Missing or unreadable data yields an empty log."""
        self._records = []
        try:
            raw = self._storage.get(self._key)
        except LocalPersistenceFailure as e:
            logger.warning("Starting with an empty attendance log: %s", e)
            return self.records
        if not raw:
            return self.records

        try:
            items = json.loads(raw)
        except ValueError as e:
            logger.warning("Stored attendance log is not valid JSON, starting empty: %s", e)
            return self.records
        if not isinstance(items, list):
            logger.warning("Stored attendance log is not a list, starting empty")
            return self.records

        seen: set[str] = set()
        for item in items:
            if not isinstance(item, Mapping):
                logger.warning("Skipping stored record that is not an object: %r", item)
                continue
            try:
                record = AttendanceRecord.from_dict(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed stored record: %s", e)
                continue
            if record.id in seen:
                logger.warning("Skipping duplicate stored record %s", record.id)
                continue
            seen.add(record.id)
            self._records.append(record)

        logger.info("Loaded %d attendance records (%d unsynced)", len(self._records), len(self.unsynced()))
        return self.records

    def append(self, record: AttendanceRecord) -> None:
        if self.get(record.id) is not None:
            raise ValidationError(f"Record {record.id} already exists")
        self._records.append(record)
        self._persist()

    def update(self, record_id: str, **fields: Any) -> bool:
        """Merge fields into a record. Returns False when nothing was changed."""
        bad = _IMMUTABLE_FIELDS.intersection(fields)
        if bad:
            raise ValidationError(f"Immutable fields: {', '.join(sorted(bad))}")

        for i, r in enumerate(self._records):
            if r.id != record_id:
                continue
            if r.synced:
                logger.debug("Ignoring update to synced record %s", record_id)
                return False
            self._records[i] = replace(r, **fields)
            self._persist()
            return True
        return False

    def unsynced(self) -> list[AttendanceRecord]:
        return [r for r in self._records if not r.synced]

    def clear_sync_errors(self) -> None:
        """Reset error state: clear every sync_error, zero retry_count on unsynced records."""
        self._records = [
            replace(r, sync_error=None) if r.synced else replace(r, sync_error=None, retry_count=0)
            for r in self._records
        ]
        self._persist()

    def _persist(self) -> None:
        blob = json.dumps([r.to_dict() for r in self._records])
        try:
            self._storage.set(self._key, blob)
        except LocalPersistenceFailure as e:
            logger.error("Failed to persist %d attendance records: %s", len(self._records), e)
