from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..core.enums import NotificationKind


@dataclass(frozen=True)
class Notification:
    """Transient message for the presentation layer (toast, flash, ...)."""

    kind: NotificationKind
    title: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "title": self.title, "message": self.message}
