from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable, Optional

from ..common.datetime_utils import now_utc
from ..common.logging import get_logger
from ..core.constants import DEFAULT_MAX_RETRIES, DEFAULT_SYNC_ERROR, DEFAULT_SYNC_INTERVAL_SECONDS, OFFLINE_ERROR
from ..core.enums import SyncTrigger
from ..records.model import AttendanceRecord
from ..records.store import RecordStore
from .connectivity import ConnectivityProvider
from .endpoint import SyncEndpoint
from .model import SyncStatus
from .scheduler import LoopScheduler, Scheduler, TimerHandle

logger = get_logger(__name__)

StatusListener = Callable[[SyncStatus], None]


class SyncEngine:
    """Pushes unsynced records to the remote endpoint.

    Each cycle goes Idle -> Syncing -> Idle (with or without error). Cycles are
    started by explicit requests, by a repeating timer and by the transition to
    online. All methods must run on the event loop that owns the engine.

    A cycle captures its batch when it is submitted; records added while it is
    in flight wait for the next trigger. Only one cycle runs at a time, and an
    in-flight push is never cancelled.
    """

    def __init__(
        self,
        store: RecordStore,
        endpoint: SyncEndpoint,
        connectivity: ConnectivityProvider,
        *,
        scheduler: Scheduler | None = None,
        sync_interval: float = DEFAULT_SYNC_INTERVAL_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        clock: Callable[[], datetime] = now_utc,
    ):
        if sync_interval <= 0:
            raise ValueError("sync_interval must be positive")
        self._store = store
        self._endpoint = endpoint
        self._connectivity = connectivity
        self._scheduler = scheduler or LoopScheduler()
        self._sync_interval = float(sync_interval)
        self._max_retries = int(max_retries)
        self._clock = clock

        self._online = bool(connectivity.is_online())
        self._status = SyncStatus(pending_records=len(store.unsynced()))
        self._timer: Optional[TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[StatusListener] = []
        self._started = False

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def is_online(self) -> bool:
        return self._online

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @property
    def sync_interval(self) -> float:
        return self._sync_interval

    # -- lifecycle -------------------------------------------------------

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._online = bool(self._connectivity.is_online())
        self._connectivity.subscribe(self._on_connectivity_change)
        self._arm_timer()
        self._update_status(
            pending_records=len(self._store.unsynced()),
            error=self._status.error if self._online else OFFLINE_ERROR,
        )
        logger.info(
            "Sync engine started (online=%s, interval=%ss, max_retries=%d)",
            self._online,
            self._sync_interval,
            self._max_retries,
        )

    def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        self._connectivity.unsubscribe(self._on_connectivity_change)
        self._cancel_timer()
        logger.info("Sync engine stopped")

    async def drain(self) -> None:
        """Wait until every in-flight cycle has finished."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending)

    def subscribe(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: StatusListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -- policy ----------------------------------------------------------

    def should_retry(self, record: AttendanceRecord) -> bool:
        if record.synced:
            return False
        return record.retry_count is None or record.retry_count < self._max_retries

    # -- cycles ----------------------------------------------------------

    def submit(
        self,
        records: Iterable[AttendanceRecord],
        trigger: SyncTrigger = SyncTrigger.RECORD_ADDED,
    ) -> Optional[asyncio.Task]:
        """Start a cycle for `records` and return its task, or None if skipped.

        The status flips to syncing before this returns.
        """
        batch = tuple(records)
        if not batch:
            return None
        if not self._online:
            logger.info("Offline, skipping %s sync of %d records", trigger.value, len(batch))
            return None
        if self._status.is_syncing:
            logger.info("Sync already in flight, skipping %s sync of %d records", trigger.value, len(batch))
            return None

        self._update_status(is_syncing=True, error=None, pending_records=len(self._store.unsynced()))
        logger.info("Syncing %d records (%s)", len(batch), trigger.value)

        task = asyncio.get_running_loop().create_task(self._run_cycle(batch, trigger))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def sync(
        self,
        records: Iterable[AttendanceRecord],
        trigger: SyncTrigger = SyncTrigger.RECORD_ADDED,
    ) -> bool:
        """Run a cycle to completion. True only if a batch was accepted."""
        task = self.submit(records, trigger)
        if task is None:
            return False
        return await task

    def sync_unsynced(self, trigger: SyncTrigger) -> Optional[asyncio.Task]:
        return self.submit(self._store.unsynced(), trigger)

    async def _run_cycle(self, batch: tuple[AttendanceRecord, ...], trigger: SyncTrigger) -> bool:
        try:
            await self._endpoint.push(batch)
        except Exception as e:
            message = str(e) or DEFAULT_SYNC_ERROR
            logger.warning("Sync of %d records failed (%s): %s", len(batch), trigger.value, message)
            self._record_failure(batch, trigger, message)
            self._update_status(
                is_syncing=False,
                error=message if self._online else OFFLINE_ERROR,
                pending_records=len(self._store.unsynced()),
            )
            return False

        for r in batch:
            self._store.update(r.id, synced=True, sync_error=None)
        # Going offline mid-flight keeps the offline error.
        self._update_status(
            is_syncing=False,
            error=None if self._online else OFFLINE_ERROR,
            pending_records=len(self._store.unsynced()),
            last_sync_time=self._clock(),
        )
        logger.info("Synced %d records", len(batch))
        return True

    def _record_failure(self, batch: tuple[AttendanceRecord, ...], trigger: SyncTrigger, message: str) -> None:
        for r in batch:
            current = self._store.get(r.id)
            if current is None:
                continue
            fields: dict = {"sync_error": message}
            # Automatic attempts never count toward max_retries.
            if trigger is SyncTrigger.MANUAL_RETRY:
                fields["retry_count"] = (current.retry_count or 0) + 1
            self._store.update(r.id, **fields)

    # -- triggers --------------------------------------------------------

    def _on_connectivity_change(self, online: bool) -> None:
        self._online = bool(online)
        self._cancel_timer()
        self._arm_timer()

        if not online:
            self._update_status(error=OFFLINE_ERROR, pending_records=len(self._store.unsynced()))
            return

        error = None if self._status.error == OFFLINE_ERROR else self._status.error
        self._update_status(error=error, pending_records=len(self._store.unsynced()))
        self.sync_unsynced(SyncTrigger.CONNECTIVITY)

    def _on_timer(self) -> None:
        self._timer = None
        try:
            if self._online:
                self.sync_unsynced(SyncTrigger.PERIODIC)
        finally:
            self._arm_timer()

    def _arm_timer(self) -> None:
        if not self._started or self._timer is not None:
            return
        self._timer = self._scheduler.call_later(self._sync_interval, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    # -- status ----------------------------------------------------------

    def refresh_pending(self) -> None:
        self._update_status(pending_records=len(self._store.unsynced()))

    def clear_error(self) -> None:
        self._update_status(error=None)

    def _update_status(self, **changes) -> None:
        updated = replace(self._status, **changes)
        if updated == self._status:
            return
        self._status = updated
        for listener in list(self._listeners):
            try:
                listener(updated)
            except Exception:
                logger.exception("Sync status listener failed")
