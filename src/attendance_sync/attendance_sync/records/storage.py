from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from ..core.exceptions import LocalPersistenceFailure


class KeyValueStorage(Protocol):
    """Durable string blobs addressed by key."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError


class InMemoryStorage(KeyValueStorage):
    """Process-local storage; used by tests and the `memory` backend."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStorage(KeyValueStorage):
    """All keys in one JSON document on disk.

    Writes go to a temp file in the same directory and are moved into place,
    so a crash mid-write leaves the previous document intact.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            document = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise LocalPersistenceFailure(f"Cannot read {self._path}: {e}") from e
        if not isinstance(document, dict):
            raise LocalPersistenceFailure(f"Unexpected document in {self._path}")
        return document

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        try:
            document = self._read_all()
        except LocalPersistenceFailure:
            # An unreadable document is replaced rather than blocking writes.
            document = {}
        document[key] = value

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=self._path.name, suffix=".tmp", dir=self._path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f)
                os.replace(tmp_name, self._path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.remove(tmp_name)
                raise
        except OSError as e:
            raise LocalPersistenceFailure(f"Cannot write {self._path}: {e}") from e
