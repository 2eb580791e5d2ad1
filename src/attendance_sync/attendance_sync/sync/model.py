from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..common.datetime_utils import to_iso


@dataclass(frozen=True)
class SyncStatus:
    """Aggregate sync state; recomputed, never persisted."""

    is_syncing: bool = False
    last_sync_time: Optional[datetime] = None
    pending_records: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "isSyncing": self.is_syncing,
            "lastSyncTime": to_iso(self.last_sync_time) if self.last_sync_time else None,
            "pendingRecords": self.pending_records,
            "error": self.error,
        }
