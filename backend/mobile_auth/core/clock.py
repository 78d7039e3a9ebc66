"""Time helpers.

Persisted timestamps are naive UTC so SQLite and PostgreSQL compare them the
same way.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def naive_utc(dt: datetime) -> datetime:
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_iso(dt: datetime) -> str:
    """Render a naive UTC timestamp as ISO-8601 with a ``Z`` suffix."""
    return naive_utc(dt).isoformat(timespec="milliseconds") + "Z"
