"""Formatting helpers for terminal output."""

from datetime import datetime, timedelta

from podshelf.utils.datetime import UNSET_DATETIME


def truncate_text(text: str, max_length: int = 60) -> str:
    """Shorten ``text`` to ``max_length`` characters, ending with an ellipsis."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def truncate_url(url: str, max_length: int = 50) -> str:
    """Shorten a URL for display, keeping its beginning."""
    return truncate_text(url, max_length)


def format_duration(value: timedelta | None) -> str:
    """Format as ``H:MM:SS`` (or ``M:SS`` under an hour); ``-`` when unknown."""
    if value is None:
        return "-"
    total = int(value.total_seconds())
    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def format_date(value: datetime | None) -> str:
    """Format as ``YYYY-MM-DD``; ``-`` when unknown."""
    if value is None or value == UNSET_DATETIME:
        return "-"
    return value.strftime("%Y-%m-%d")
