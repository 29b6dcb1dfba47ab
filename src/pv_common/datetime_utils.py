"""UTC datetime utilities."""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def utc_seconds_ago(seconds: int) -> datetime:
    """Return the timezone-aware UTC instant `seconds` before now."""
    return utc_now() - timedelta(seconds=seconds)
