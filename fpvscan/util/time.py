"""Time utilities shared across fpvscan components."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now_str() -> str:
    """Return the current UTC timestamp as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def epoch_to_utc_str(ts: float) -> str:
    """Render a time.time() value as an ISO-8601 UTC string."""
    return datetime.fromtimestamp(ts, timezone.utc).isoformat()
