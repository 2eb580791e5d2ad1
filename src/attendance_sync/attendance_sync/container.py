from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .common.logging import get_logger
from .core.constants import DEFAULT_MAX_RETRIES, DEFAULT_SYNC_INTERVAL_SECONDS, DEFAULT_SYNC_TIMEOUT_SECONDS
from .database.connection import DBConfig, DatabaseConnection
from .records.mysql_storage import MySQLKeyValueStorage
from .records.storage import InMemoryStorage, JsonFileStorage, KeyValueStorage
from .records.store import RecordStore
from .recorder.service import AttendanceRecorder
from .runtime import EventLoopThread
from .sync.connectivity import ManualConnectivity
from .sync.endpoint import HttpSyncEndpoint, SyncEndpoint, UnconfiguredSyncEndpoint
from .sync.engine import SyncEngine
from .sync.scheduler import LoopScheduler

logger = get_logger(__name__)


@dataclass(frozen=True)
class Container:
    runtime: EventLoopThread
    storage: KeyValueStorage
    store: RecordStore
    connectivity: ManualConnectivity
    endpoint: SyncEndpoint
    engine: SyncEngine
    recorder: AttendanceRecorder

    def shutdown(self) -> None:
        """Stop timers, let in-flight pushes finish, then stop the loop."""
        self.runtime.call(self.engine.stop)
        self.runtime.run(self.engine.drain())
        self.runtime.stop()


def build_storage(settings: Any) -> KeyValueStorage:
    backend = str(getattr(settings, "STORAGE_BACKEND", "file")).lower()
    if backend == "memory":
        return InMemoryStorage()
    if backend == "mysql":
        conn = DatabaseConnection(DBConfig.from_mapping(getattr(settings, "DB_CONFIG")))
        return MySQLKeyValueStorage(conn)
    if backend == "file":
        return JsonFileStorage(getattr(settings, "STORAGE_PATH", "instance/attendance_store.json"))
    raise ValueError(f"Unknown STORAGE_BACKEND: {backend!r}")


def build_endpoint(settings: Any) -> SyncEndpoint:
    url = getattr(settings, "SYNC_ENDPOINT_URL", None)
    if not url:
        logger.warning("SYNC_ENDPOINT_URL is not set; records will stay local")
        return UnconfiguredSyncEndpoint()
    headers = {}
    token = getattr(settings, "SYNC_API_TOKEN", None)
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return HttpSyncEndpoint(
        url,
        timeout=float(getattr(settings, "SYNC_TIMEOUT_SECONDS", DEFAULT_SYNC_TIMEOUT_SECONDS)),
        headers=headers,
    )


def build_container(
    *,
    settings: Any,
    storage: Optional[KeyValueStorage] = None,
    endpoint: Optional[SyncEndpoint] = None,
) -> Container:
    runtime = EventLoopThread()
    runtime.start()

    if storage is None:
        storage = build_storage(settings)
    store = RecordStore(storage)
    store.load()

    connectivity = ManualConnectivity(online=bool(getattr(settings, "START_ONLINE", True)))
    if endpoint is None:
        endpoint = build_endpoint(settings)

    engine = SyncEngine(
        store,
        endpoint,
        connectivity,
        scheduler=LoopScheduler(runtime.loop),
        sync_interval=float(getattr(settings, "SYNC_INTERVAL_SECONDS", DEFAULT_SYNC_INTERVAL_SECONDS)),
        max_retries=int(getattr(settings, "MAX_RETRIES", DEFAULT_MAX_RETRIES)),
    )
    recorder = AttendanceRecorder(store, engine)
    runtime.call(engine.start)

    return Container(
        runtime=runtime,
        storage=storage,
        store=store,
        connectivity=connectivity,
        endpoint=endpoint,
        engine=engine,
        recorder=recorder,
    )
