from __future__ import annotations

from typing import Any, Mapping

from flask import Flask, jsonify, request

from ..common.logging import get_logger
from ..core.exceptions import ValidationError
from ..container import Container
from ..records.model import AttendanceRecord
from .model import Notification

logger = get_logger(__name__)


def register(app: Flask, container: Container) -> None:
    recorder = container.recorder
    runtime = container.runtime

    def _status_payload() -> dict[str, Any]:
        status = recorder.sync_status.to_dict()
        status["isOnline"] = recorder.is_online
        return status

    async def _add_record(payload: Mapping[str, Any]) -> tuple[AttendanceRecord, list[Notification]]:
        notes: list[Notification] = []
        recorder.on_notification(notes.append)
        try:
            record = await recorder.add_record(payload)
        finally:
            recorder.remove_notification_listener(notes.append)
        return record, notes

    @app.route("/api/attendance/records", methods=["GET"], endpoint="api_list_records")
    def list_records():
        records = runtime.call(lambda: recorder.records)
        return jsonify({"success": True, "records": [r.to_dict() for r in records]})

    @app.route("/api/attendance/records", methods=["POST"], endpoint="api_add_record")
    def add_record():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"success": False, "message": "Expected a JSON object"}), 400

        try:
            record, notes = runtime.run(_add_record(data))
        except ValidationError as e:
            return jsonify({"success": False, "message": str(e)}), 400
        except Exception:
            logger.exception("Failed to record attendance")
            return jsonify({"success": False, "message": "System error while recording attendance"}), 500

        return (
            jsonify(
                {
                    "success": True,
                    "record": record.to_dict(),
                    "notification": notes[0].to_dict() if notes else None,
                }
            ),
            201,
        )

    @app.route("/api/attendance/sync-status", methods=["GET"], endpoint="api_sync_status")
    def sync_status():
        return jsonify({"success": True, "status": runtime.call(_status_payload)})

    @app.route("/api/attendance/sync/retry", methods=["POST"], endpoint="api_retry_sync")
    def retry_sync():
        synced = runtime.run(recorder.retry_sync())
        return jsonify({"success": True, "synced": synced, "status": runtime.call(_status_payload)})

    @app.route("/api/attendance/sync/clear-error", methods=["POST"], endpoint="api_clear_sync_error")
    def clear_sync_error():
        runtime.call(recorder.clear_sync_error)
        return jsonify({"success": True, "status": runtime.call(_status_payload)})

    @app.route("/api/connectivity/online", methods=["POST"], endpoint="api_connectivity_online")
    def connectivity_online():
        runtime.call(container.connectivity.set_online)
        return jsonify({"success": True, "status": runtime.call(_status_payload)})

    @app.route("/api/connectivity/offline", methods=["POST"], endpoint="api_connectivity_offline")
    def connectivity_offline():
        runtime.call(container.connectivity.set_offline)
        return jsonify({"success": True, "status": runtime.call(_status_payload)})
