from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from src.attendance_sync.attendance_sync.core.enums import SyncTrigger
from src.attendance_sync.attendance_sync.core.exceptions import SyncFailure
from src.attendance_sync.attendance_sync.records.model import AttendanceRecord, CheckInData


def _append(h, fixed_now, member_id="m1") -> AttendanceRecord:
    rec = AttendanceRecord.create(CheckInData(member_id, "s1", "main"), now=fixed_now)
    h.store.append(rec)
    return rec


def test_should_retry_policy(make_harness, fixed_now):
    h = make_harness(max_retries=3)
    rec = AttendanceRecord.create(CheckInData("m1", "s1", "main"), now=fixed_now)

    assert h.engine.should_retry(rec)
    assert h.engine.should_retry(replace(rec, retry_count=None))
    assert h.engine.should_retry(replace(rec, retry_count=2))
    assert not h.engine.should_retry(replace(rec, retry_count=3))
    assert not h.engine.should_retry(replace(rec, synced=True))


def test_rejects_non_positive_interval(make_harness):
    with pytest.raises(ValueError):
        make_harness(sync_interval=0)


@pytest.mark.asyncio
async def test_empty_batch_is_noop(harness):
    before = harness.engine.status

    assert await harness.engine.sync([]) is False

    assert harness.endpoint.calls == []
    assert harness.engine.status == before


@pytest.mark.asyncio
async def test_success_marks_batch_synced(harness, fixed_now):
    a, b = _append(harness, fixed_now, "m1"), _append(harness, fixed_now, "m2")

    assert await harness.engine.sync(harness.store.unsynced()) is True

    assert [r.id for r in harness.endpoint.calls[0]] == [a.id, b.id]
    assert all(r.synced for r in harness.store.records)
    status = harness.engine.status
    assert status.is_syncing is False
    assert status.pending_records == 0
    assert status.last_sync_time == fixed_now
    assert status.error is None


@pytest.mark.asyncio
async def test_status_is_syncing_while_push_in_flight(harness, fixed_now):
    _append(harness, fixed_now)
    harness.endpoint.gate = asyncio.Event()

    task = harness.engine.submit(harness.store.unsynced())

    assert harness.engine.status.is_syncing is True
    assert harness.engine.status.pending_records == 1
    harness.endpoint.gate.set()
    await task
    assert harness.engine.status.is_syncing is False


@pytest.mark.asyncio
async def test_automatic_failure_keeps_records_and_retry_count(harness, fixed_now):
    rec = _append(harness, fixed_now)
    harness.endpoint.always_fail = SyncFailure("Sync failed")

    assert await harness.engine.sync(harness.store.unsynced(), SyncTrigger.PERIODIC) is False

    stored = harness.store.get(rec.id)
    assert stored.synced is False
    assert stored.sync_error == "Sync failed"
    assert stored.retry_count == 0
    status = harness.engine.status
    assert status.error == "Sync failed"
    assert status.is_syncing is False
    assert status.last_sync_time is None
    assert status.pending_records == 1


@pytest.mark.asyncio
async def test_manual_retry_failure_counts(harness, fixed_now):
    rec = _append(harness, fixed_now)
    harness.endpoint.always_fail = SyncFailure("Sync failed")

    await harness.engine.sync(harness.store.unsynced(), SyncTrigger.MANUAL_RETRY)
    await harness.engine.sync(harness.store.unsynced(), SyncTrigger.MANUAL_RETRY)

    assert harness.store.get(rec.id).retry_count == 2


@pytest.mark.asyncio
async def test_exception_without_message_gets_default(harness, fixed_now):
    _append(harness, fixed_now)
    harness.endpoint.always_fail = RuntimeError()

    await harness.engine.sync(harness.store.unsynced())

    assert harness.engine.status.error == "Sync failed"


@pytest.mark.asyncio
async def test_success_clears_previous_error(harness, fixed_now):
    rec = _append(harness, fixed_now)
    harness.endpoint.failures = [SyncFailure("boom"), None]

    await harness.engine.sync(harness.store.unsynced())
    await harness.engine.sync(harness.store.unsynced())

    assert harness.engine.status.error is None
    assert harness.store.get(rec.id).synced is True
    assert harness.store.get(rec.id).sync_error is None


@pytest.mark.asyncio
async def test_offline_skips_network(make_harness, fixed_now):
    h = make_harness(online=False)
    _append(h, fixed_now)

    assert await h.engine.sync(h.store.unsynced()) is False

    assert h.endpoint.calls == []
    assert h.engine.status.is_syncing is False
    assert h.engine.status.error == "offline"


@pytest.mark.asyncio
async def test_going_offline_sets_error_without_network(harness, fixed_now):
    _append(harness, fixed_now)

    harness.connectivity.set_offline()
    await harness.engine.drain()

    assert harness.engine.is_online is False
    assert harness.engine.status.error == "offline"
    assert harness.engine.status.is_syncing is False
    assert harness.endpoint.calls == []


@pytest.mark.asyncio
async def test_offline_error_survives_push_finishing_after_disconnect(harness, fixed_now):
    rec = _append(harness, fixed_now)
    harness.endpoint.gate = asyncio.Event()
    task = harness.engine.submit(harness.store.unsynced())

    harness.connectivity.set_offline()
    harness.endpoint.gate.set()
    assert await task is True

    assert harness.store.get(rec.id).synced is True
    assert harness.engine.status.is_syncing is False
    assert harness.engine.status.last_sync_time == fixed_now
    assert harness.engine.status.error == "offline"


@pytest.mark.asyncio
async def test_failed_push_after_disconnect_keeps_offline_error(harness, fixed_now):
    rec = _append(harness, fixed_now)
    harness.endpoint.failures = [SyncFailure("Sync failed")]
    harness.endpoint.gate = asyncio.Event()
    task = harness.engine.submit(harness.store.unsynced())

    harness.connectivity.set_offline()
    harness.endpoint.gate.set()
    assert await task is False

    assert harness.store.get(rec.id).sync_error == "Sync failed"
    assert harness.engine.status.error == "offline"


@pytest.mark.asyncio
async def test_going_online_syncs_current_backlog_once(make_harness, fixed_now):
    h = make_harness(online=False)
    a, b = _append(h, fixed_now, "m1"), _append(h, fixed_now, "m2")

    h.connectivity.set_online()
    await h.engine.drain()

    assert len(h.endpoint.calls) == 1
    assert [r.id for r in h.endpoint.calls[0]] == [a.id, b.id]
    assert h.engine.status.error is None


@pytest.mark.asyncio
async def test_connectivity_transition_rearms_timer(harness):
    first = harness.scheduler.active
    assert len(first) == 1

    harness.connectivity.set_offline()

    assert first[0].cancelled
    assert len(harness.scheduler.active) == 1
    assert harness.scheduler.active[0] is not first[0]


@pytest.mark.asyncio
async def test_periodic_fires_only_when_online_and_reschedules(make_harness, fixed_now):
    h = make_harness(online=False, sync_interval=10)
    _append(h, fixed_now)

    h.scheduler.advance(10)
    await h.engine.drain()
    assert h.endpoint.calls == []
    assert len(h.scheduler.active) == 1

    h.connectivity.set_online()
    await h.engine.drain()
    h.endpoint.calls.clear()

    # Backlog already synced: periodic fire has nothing to send.
    h.scheduler.advance(10)
    await h.engine.drain()
    assert h.endpoint.calls == []
    assert len(h.scheduler.active) == 1


@pytest.mark.asyncio
async def test_periodic_retries_failed_batch(make_harness, fixed_now):
    h = make_harness(sync_interval=10)
    rec = _append(h, fixed_now)
    h.endpoint.failures = [SyncFailure("down"), SyncFailure("down"), None]

    for _ in range(3):
        h.scheduler.advance(10)
        await h.engine.drain()

    assert len(h.endpoint.calls) == 3
    assert h.store.get(rec.id).synced is True
    assert h.store.get(rec.id).retry_count == 0


@pytest.mark.asyncio
async def test_one_cycle_at_a_time_with_snapshot(harness, fixed_now):
    first = _append(harness, fixed_now, "m1")
    harness.endpoint.gate = asyncio.Event()
    task = harness.engine.submit(harness.store.unsynced())

    late = _append(harness, fixed_now, "m2")
    assert harness.engine.submit(harness.store.unsynced()) is None

    harness.endpoint.gate.set()
    await task
    await harness.engine.drain()

    assert len(harness.endpoint.calls) == 1
    assert [r.id for r in harness.endpoint.calls[0]] == [first.id]
    assert harness.store.get(late.id).synced is False
    assert harness.engine.status.pending_records == 1


@pytest.mark.asyncio
async def test_stop_cancels_timer_and_connectivity(harness, fixed_now):
    _append(harness, fixed_now)
    harness.engine.stop()

    harness.scheduler.advance(300)
    harness.connectivity.set_offline()
    harness.connectivity.set_online()
    await harness.engine.drain()

    assert harness.scheduler.active == []
    assert harness.endpoint.calls == []


@pytest.mark.asyncio
async def test_status_listeners_see_each_transition(harness, fixed_now):
    seen = []
    harness.engine.subscribe(seen.append)
    _append(harness, fixed_now)

    await harness.engine.sync(harness.store.unsynced())

    assert [s.is_syncing for s in seen] == [True, False]
    assert seen[-1].last_sync_time == fixed_now
