# -*- coding: utf-8 -*-
"""
clock.py - Injectable time source

All components read "now" through a Clock instead of calling datetime.now()
directly, so tests can pin the instant.
"""

from datetime import datetime, timezone


class Clock:
    """Time source interface."""

    def current_time(self) -> datetime:
        """Return the current instant as a timezone-aware datetime."""
        raise NotImplementedError


class SystemClock(Clock):
    """Wall clock in UTC."""

    def current_time(self) -> datetime:
        return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Serialize an aware datetime for persistence."""
    return dt.isoformat()


def parse_iso(value):
    """Parse a persisted ISO timestamp.

    Naive values are assumed to be UTC. Returns None for empty values.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        # 'Z' suffix is not accepted by fromisoformat before Python 3.11
        dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
