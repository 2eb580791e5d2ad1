from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

import pytest

from src.attendance_sync.attendance_sync.records.storage import InMemoryStorage
from src.attendance_sync.attendance_sync.records.store import RecordStore
from src.attendance_sync.attendance_sync.recorder.service import AttendanceRecorder
from src.attendance_sync.attendance_sync.sync.connectivity import ManualConnectivity
from src.attendance_sync.attendance_sync.sync.engine import SyncEngine


class _ManualTimer:
    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual clock: timers only fire inside advance()."""

    def __init__(self):
        self.now = 0.0
        self._timers: list[_ManualTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualTimer:
        timer = _ManualTimer(self.now + delay, callback)
        self._timers.append(timer)
        return timer

    @property
    def active(self) -> list[_ManualTimer]:
        return [t for t in self._timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = sorted((t for t in self.active if t.when <= target), key=lambda t: t.when)
            if not due:
                break
            timer = due[0]
            self._timers.remove(timer)
            self.now = timer.when
            timer.callback()
        self.now = target


class FakeEndpoint:
    """Records every batch; fails on demand; can hold a push open with `gate`."""

    def __init__(self):
        self.calls: list[list] = []
        self.failures: list[Optional[Exception]] = []
        self.always_fail: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    async def push(self, records) -> None:
        self.calls.append(list(records))
        if self.gate is not None:
            await self.gate.wait()
        if self.failures:
            exc = self.failures.pop(0)
            if exc is not None:
                raise exc
            return
        if self.always_fail is not None:
            raise self.always_fail


@dataclass
class Harness:
    storage: InMemoryStorage
    store: RecordStore
    connectivity: ManualConnectivity
    endpoint: FakeEndpoint
    scheduler: ManualScheduler
    engine: SyncEngine
    recorder: AttendanceRecorder


@pytest.fixture
def fixed_now():
    return datetime(2026, 2, 1, 8, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_harness(fixed_now):
    started: list[SyncEngine] = []

    def _make(*, online: bool = True, max_retries: int = 3, sync_interval: float = 30.0, storage=None) -> Harness:
        storage = storage if storage is not None else InMemoryStorage()
        store = RecordStore(storage)
        store.load()
        connectivity = ManualConnectivity(online=online)
        endpoint = FakeEndpoint()
        scheduler = ManualScheduler()
        engine = SyncEngine(
            store,
            endpoint,
            connectivity,
            scheduler=scheduler,
            sync_interval=sync_interval,
            max_retries=max_retries,
            clock=lambda: fixed_now,
        )
        recorder = AttendanceRecorder(store, engine, clock=lambda: fixed_now)
        engine.start()
        started.append(engine)
        return Harness(storage, store, connectivity, endpoint, scheduler, engine, recorder)

    yield _make

    for engine in started:
        engine.stop()


@pytest.fixture
def harness(make_harness) -> Harness:
    return make_harness()
