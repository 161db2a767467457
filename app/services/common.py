"""Shared service utilities: UUID coercion, epoch timestamps, redirect targets."""
from __future__ import annotations

import re
import uuid
from datetime import UTC, datetime
from typing import Any


def coerce_uuid(value: Any) -> uuid.UUID | None:
    """Convert a string or UUID to UUID, or return None."""
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def from_epoch(value: int | float | None) -> datetime | None:
    """Stripe timestamps are seconds since the epoch; ``None`` stays ``None``."""
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=UTC)


def sanitize_next_url(next_url: str | None, default: str = "/dashboard") -> str:
    """Allow only local path redirects, fallback to default otherwise."""
    candidate = str(next_url or "").strip()
    # Browsers drop tabs and newlines and read a backslash as a slash.
    normalized = re.sub(r"[\t\r\n]", "", candidate).replace("\\", "/")
    if normalized.startswith("/") and not normalized.startswith("//") and "://" not in normalized:
        return candidate
    return default
