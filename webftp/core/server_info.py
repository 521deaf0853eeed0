"""Process uptime reported by the health probe."""
from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone

STARTED_AT = time.time()


def uptime_seconds(now: float | None = None) -> float:
    current = time.time() if now is None else now
    return max(0.0, current - STARTED_AT)


def describe_server(now: float | None = None) -> dict:
    """Start time, current time and uptime as JSON friendly values."""

    current = time.time() if now is None else now
    seconds = uptime_seconds(current)
    return {
        "start_time": datetime.fromtimestamp(STARTED_AT, timezone.utc).isoformat(),
        "server_time": datetime.fromtimestamp(current, timezone.utc).isoformat(),
        "uptime": str(timedelta(seconds=int(seconds))),
        "uptime_seconds": round(seconds, 3),
    }
