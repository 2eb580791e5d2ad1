from __future__ import annotations

from enum import Enum


class SyncTrigger(str, Enum):
    """What started a sync cycle. Only MANUAL_RETRY counts toward retry_count."""

    RECORD_ADDED = "record_added"
    MANUAL_RETRY = "manual_retry"
    PERIODIC = "periodic"
    CONNECTIVITY = "connectivity"


class NotificationKind(str, Enum):
    """Transient messages emitted to the presentation layer."""

    QUEUED = "queued"
    SYNCING = "syncing"
    RETRYING = "retrying"
