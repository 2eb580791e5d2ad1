from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from ..common.datetime_utils import now_utc, parse_iso, to_iso
from ..common.validators import optional_text, pick, require_non_empty


@dataclass(frozen=True)
class CheckInData:
    """Caller-supplied part of a check-in."""

    member_id: str
    service_id: str
    location: str
    notes: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CheckInData":
        """Build from a request payload; raises ValidationError on missing fields."""
        return cls(
            member_id=require_non_empty(pick(data, "memberId", "member_id"), "memberId"),
            service_id=require_non_empty(pick(data, "serviceId", "service_id"), "serviceId"),
            location=require_non_empty(pick(data, "location"), "location"),
            notes=optional_text(pick(data, "notes")),
        )


@dataclass(frozen=True)
class AttendanceRecord:
    """A single check-in observation plus its sync metadata."""

    id: str
    member_id: str
    service_id: str
    location: str
    timestamp: datetime
    notes: Optional[str] = None
    synced: bool = False
    sync_error: Optional[str] = None
    retry_count: Optional[int] = 0

    @classmethod
    def create(cls, data: CheckInData, *, now: datetime | None = None) -> "AttendanceRecord":
        return cls(
            id=str(uuid.uuid4()),
            member_id=data.member_id,
            service_id=data.service_id,
            location=data.location,
            notes=data.notes,
            timestamp=now or now_utc(),
            synced=False,
            sync_error=None,
            retry_count=0,
        )

    def to_dict(self) -> dict[str, Any]:
        """Wire/storage form, camelCase keys."""
        return {
            "id": self.id,
            "memberId": self.member_id,
            "serviceId": self.service_id,
            "location": self.location,
            "notes": self.notes,
            "timestamp": to_iso(self.timestamp),
            "synced": self.synced,
            "syncError": self.sync_error,
            "retryCount": self.retry_count,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AttendanceRecord":
        retry_count = data.get("retryCount")
        return cls(
            id=str(data["id"]),
            member_id=str(data["memberId"]),
            service_id=str(data["serviceId"]),
            location=str(data["location"]),
            notes=data.get("notes"),
            timestamp=parse_iso(str(data["timestamp"])),
            synced=data.get("synced") is True,
            sync_error=data.get("syncError"),
            retry_count=int(retry_count) if retry_count is not None else None,
        )
