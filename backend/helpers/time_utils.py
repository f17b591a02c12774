"""
Clock and timestamp helpers.

Every moderation decision that depends on "now" reads it through `utc_now()`
so tests can patch a single function to move the clock.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """
    Normalize a datetime to aware UTC.

    SQLite hands back naive datetimes even for timezone-aware columns, so
    naive values are assumed to already be UTC.

    Args:
        dt: The datetime to normalize, or None

    Returns:
        The aware datetime, or None when dt is None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_iso8601(dt: datetime) -> str:
    """
    Format a datetime as ISO 8601 string.

    Args:
        dt: The datetime to format

    Returns:
        ISO 8601 formatted string (e.g., "2024-01-15T10:30:00Z")
    """
    aware = ensure_utc(dt)
    assert aware is not None
    return aware.strftime("%Y-%m-%dT%H:%M:%SZ")
