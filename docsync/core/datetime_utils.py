"""Datetime helpers.

All timestamps handled by the sync engine are timezone-aware UTC.
"""

from datetime import datetime, timezone

# Zero value for "never synced". Any real sync time compares greater.
NEVER = datetime.min.replace(tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Coerce a datetime to aware UTC, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_never(value: datetime) -> bool:
    """Whether ``value`` is the zero value used for never-synced connectors."""
    return ensure_utc(value) == NEVER


def parse_rfc3339(value: str) -> datetime:
    """Parse an RFC 3339 timestamp such as ``2024-05-01T12:00:00.000Z``.

    Raises:
        ValueError: If the value is not a valid timestamp
    """
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def format_rfc3339(value: datetime) -> str:
    """Format a datetime as RFC 3339 in UTC with a ``Z`` suffix."""
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")
