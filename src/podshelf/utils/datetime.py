"""Timezone helpers.

All timestamps in podshelf are timezone-aware UTC.
"""

from datetime import datetime, timezone

# Stand-in for "no publish date known"; sorts last in newest-first order.
UNSET_DATETIME = datetime.min.replace(tzinfo=timezone.utc)


def now_utc() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC.

    Args:
        value: Datetime to normalize

    Returns:
        Aware datetime in UTC
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
