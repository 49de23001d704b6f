from __future__ import annotations

from datetime import datetime, timezone


def utcnow_iso() -> str:
    """Current UTC time as ISO-8601 string with Z (microsecond precision)."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
