from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Mapping, Union

from ..common.datetime_utils import now_utc
from ..common.logging import get_logger
from ..core.enums import NotificationKind, SyncTrigger
from ..records.model import AttendanceRecord, CheckInData
from ..records.store import RecordStore
from ..sync.engine import SyncEngine
from ..sync.model import SyncStatus
from .model import Notification

logger = get_logger(__name__)

NotificationListener = Callable[[Notification], None]


class AttendanceRecorder:
    """Entry point for recording check-ins and driving their sync.

    Recording never fails because of the network: the local append happens
    first and sync problems only show up in `sync_status`.
    """

    def __init__(
        self,
        store: RecordStore,
        engine: SyncEngine,
        *,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._store = store
        self._engine = engine
        self._clock = clock
        self._listeners: list[NotificationListener] = []

    @property
    def records(self) -> tuple[AttendanceRecord, ...]:
        return self._store.records

    @property
    def sync_status(self) -> SyncStatus:
        return self._engine.status

    @property
    def is_online(self) -> bool:
        return self._engine.is_online

    def on_notification(self, listener: NotificationListener) -> None:
        self._listeners.append(listener)

    def remove_notification_listener(self, listener: NotificationListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def add_record(self, data: Union[CheckInData, Mapping[str, Any]]) -> AttendanceRecord:
        """Append a new record and, when online, start syncing the backlog.

        Returns once the record is stored locally; the push runs in the
        background on the engine's loop.
        """
        if not isinstance(data, CheckInData):
            data = CheckInData.from_mapping(data)

        record = AttendanceRecord.create(data, now=self._clock())
        self._store.append(record)
        self._engine.refresh_pending()

        online = self._engine.is_online
        if online:
            self._notify(NotificationKind.SYNCING, "Attendance recorded", "Syncing...")
            self._engine.submit(
                [r for r in self._store.unsynced() if self._engine.should_retry(r)],
                SyncTrigger.RECORD_ADDED,
            )
        else:
            self._notify(NotificationKind.QUEUED, "Attendance recorded", "Will sync when online")
        return record

    async def retry_sync(self) -> bool:
        """Manually push every record still eligible for retry.

        Each failed manual attempt counts toward the record's retry limit.
        """
        eligible = [r for r in self._store.unsynced() if self._engine.should_retry(r)]
        if not eligible:
            return False

        task = self._engine.submit(eligible, SyncTrigger.MANUAL_RETRY)
        if task is None:
            return False
        self._notify(NotificationKind.RETRYING, "Retrying sync", f"Attempting to sync {len(eligible)} records")
        return await task

    def clear_sync_error(self) -> None:
        self._store.clear_sync_errors()
        self._engine.clear_error()

    def _notify(self, kind: NotificationKind, title: str, message: str) -> None:
        notification = Notification(kind=kind, title=title, message=message)
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:
                logger.exception("Notification listener failed")
