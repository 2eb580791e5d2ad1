"""Example: drive the recorder directly (no Flask).

Records two check-ins while offline, then comes back online against an
endpoint that accepts everything.
"""

import asyncio

from src.attendance_sync.attendance_sync.records.storage import InMemoryStorage
from src.attendance_sync.attendance_sync.records.store import RecordStore
from src.attendance_sync.attendance_sync.recorder.service import AttendanceRecorder
from src.attendance_sync.attendance_sync.sync.connectivity import ManualConnectivity
from src.attendance_sync.attendance_sync.sync.engine import SyncEngine


class PrintingEndpoint:
    async def push(self, records):
        print(f"-> pushing {len(records)} records: {[r.member_id for r in records]}")


async def main():
    store = RecordStore(InMemoryStorage())
    store.load()
    connectivity = ManualConnectivity(online=False)
    engine = SyncEngine(store, PrintingEndpoint(), connectivity, sync_interval=5)
    recorder = AttendanceRecorder(store, engine)
    recorder.on_notification(lambda n: print(f"[{n.kind.value}] {n.title}: {n.message}"))

    engine.start()
    await recorder.add_record({"memberId": "m1", "serviceId": "s1", "location": "main"})
    await recorder.add_record({"memberId": "m2", "serviceId": "s1", "location": "main"})
    print(recorder.sync_status.to_dict())

    connectivity.set_online()
    await engine.drain()
    print(recorder.sync_status.to_dict())
    engine.stop()


if __name__ == "__main__":
    asyncio.run(main())
