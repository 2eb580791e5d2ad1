"""Remote side of synchronization.

An endpoint accepts a whole batch or rejects it; there is no per-record
acknowledgement.
"""

from __future__ import annotations

from typing import Protocol, Sequence

import httpx

from ..common.logging import get_logger
from ..core.constants import DEFAULT_SYNC_TIMEOUT_SECONDS
from ..core.exceptions import SyncFailure
from ..records.model import AttendanceRecord

logger = get_logger(__name__)


class SyncEndpoint(Protocol):
    async def push(self, records: Sequence[AttendanceRecord]) -> None:
        """Deliver the batch; raise SyncFailure (or any error) on rejection."""
        raise NotImplementedError


class HttpSyncEndpoint(SyncEndpoint):
    """POSTs `{"records": [...]}` to a configured URL with httpx."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = DEFAULT_SYNC_TIMEOUT_SECONDS,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._url = url
        self._timeout = float(timeout)
        self._headers = dict(headers or {})
        self._transport = transport

    async def push(self, records: Sequence[AttendanceRecord]) -> None:
        payload = {"records": [r.to_dict() for r in records]}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._url, json=payload, headers=self._headers)
        except httpx.HTTPError as e:
            raise SyncFailure(f"Sync endpoint unreachable: {e}") from e

        if response.is_success:
            logger.debug("Pushed %d records to %s", len(records), self._url)
            return

        detail = _error_detail(response)
        raise SyncFailure(f"Sync rejected ({response.status_code}): {detail}")


class UnconfiguredSyncEndpoint(SyncEndpoint):
    """Placeholder when no SYNC_ENDPOINT_URL is set; every batch stays local."""

    async def push(self, records: Sequence[AttendanceRecord]) -> None:
        raise SyncFailure("Sync endpoint is not configured")


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if body.get(key):
                return str(body[key])
    return response.text.strip() or response.reason_phrase
