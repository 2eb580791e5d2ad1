"""Back up the local attendance log.

Note: Reads the blob straight from the configured storage backend, so it works
while the app is stopped and records that never reached the server are kept.
"""

from __future__ import annotations

import importlib
import json
import sys
from datetime import datetime
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.attendance_sync.attendance_sync.container import build_storage
from src.attendance_sync.attendance_sync.records.store import RecordStore


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    store = RecordStore(build_storage(settings))
    records = store.load()

    out_dir = REPO_ROOT / "backups"
    out_dir.mkdir(parents=True, exist_ok=True)

    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    out_file = out_dir / f"attendance_records_{ts}.json"
    out_file.write_text(json.dumps([r.to_dict() for r in records], indent=2), encoding="utf-8")

    unsynced = sum(1 for r in records if not r.synced)
    print(f"OK: Backup created: {out_file} ({len(records)} records, {unsynced} unsynced)")


if __name__ == "__main__":
    main()
