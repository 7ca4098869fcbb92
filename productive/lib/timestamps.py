"""
Timestamp helpers.

All timestamps cross the wire as ISO-8601 UTC strings with millisecond
precision and a trailing "Z", the shape browser clients produce with
Date.toISOString(). Comparisons always go through aware datetimes.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time truncated to milliseconds."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def format_ts(dt: datetime) -> str:
    """Render an aware datetime as 2026-01-02T03:04:05.678Z."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_ts(value: str | datetime | None) -> datetime | None:
    """Parse an ISO timestamp (with or without Z) into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def now_iso() -> str:
    return format_ts(utcnow())
