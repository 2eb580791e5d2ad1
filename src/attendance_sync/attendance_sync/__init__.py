"""Offline-tolerant attendance recording and synchronization.

Feature modules: `records` (durable local log), `sync` (connectivity-aware
push to the remote authority) and `recorder` (public entry point plus a thin
Flask JSON layer).
"""
from __future__ import annotations

from .records.model import AttendanceRecord, CheckInData
from .records.store import RecordStore
from .recorder.service import AttendanceRecorder
from .sync.engine import SyncEngine
from .sync.model import SyncStatus

__all__ = [
    "AttendanceRecord",
    "AttendanceRecorder",
    "CheckInData",
    "RecordStore",
    "SyncEngine",
    "SyncStatus",
]
