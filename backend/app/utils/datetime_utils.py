"""
Datetime utility functions.

Every DateTime column stores naive UTC so SQLite and PostgreSQL compare
timestamps the same way. Values coming in from clients are normalized
with to_naive_utc before they touch the database.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Convert an aware datetime to naive UTC; naive values are assumed UTC.

    Examples:
        2024-01-01T02:00:00+02:00 -> 2024-01-01T00:00:00
        2024-01-01T00:00:00       -> 2024-01-01T00:00:00
    """
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
