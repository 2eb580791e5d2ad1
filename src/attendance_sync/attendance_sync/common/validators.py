from __future__ import annotations

from typing import Any, Mapping, Optional

from ..core.exceptions import ValidationError


def require_non_empty(value: Any, field_name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def pick(data: Mapping[str, Any], *keys: str) -> Any:
    """First present key wins, so camelCase and snake_case payloads both work."""
    for key in keys:
        if key in data:
            return data[key]
    return None
