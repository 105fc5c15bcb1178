"""
Epoch-millisecond conversions.

Timestamps are persisted as integer milliseconds since the Unix epoch and
surfaced as timezone-aware UTC datetimes. Conversions go through timedelta
arithmetic so millisecond values survive a round trip exactly.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def to_epoch_ms(value: datetime) -> int:
    """
    Convert a datetime to epoch milliseconds.

    Naive datetimes are interpreted as local time. Sub-millisecond precision
    is truncated.
    """
    if value.tzinfo is None:
        value = value.astimezone()
    return (value - EPOCH) // _ONE_MS


def from_epoch_ms(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return EPOCH + timedelta(milliseconds=value)


def optional_from_epoch_ms(value: Optional[int]) -> Optional[datetime]:
    return None if value is None else from_epoch_ms(value)


def optional_to_epoch_ms(value: Optional[datetime]) -> Optional[int]:
    return None if value is None else to_epoch_ms(value)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


__all__ = [
    "EPOCH",
    "from_epoch_ms",
    "optional_from_epoch_ms",
    "optional_to_epoch_ms",
    "to_epoch_ms",
    "utc_now",
]
