"""UTC timestamp helpers used by created/updated-at column hooks."""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def utc_now_naive() -> datetime:
    """Current UTC time without tzinfo.

    ``timestamp without time zone`` columns take naive values; the stored
    wall-clock time is always UTC.
    """
    return utc_now().replace(tzinfo=None)
