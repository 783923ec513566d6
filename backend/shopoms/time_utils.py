"""
UTC clock and calendar helpers.

Every timestamp in the store is UTC without tzinfo. Aware values coming in
are converted; naive values are taken as already UTC.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    ISO-8601 text -> UTC-naive datetime; blank or None -> None.

    A bare date ("2024-03-01") means midnight UTC. Raises ValueError for
    anything else datetime.fromisoformat cannot read.
    """
    if value is None or not value.strip():
        return None
    text = value.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    return as_utc_naive(datetime.fromisoformat(text))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Whole-second ISO-8601 with a trailing Z, e.g. 2024-03-01T00:00:00Z."""
    if dt is None:
        return None
    return as_utc_naive(dt).replace(microsecond=0).isoformat() + "Z"


def start_of_day(dt: datetime) -> datetime:
    return datetime(dt.year, dt.month, dt.day)


def start_of_month(dt: datetime) -> datetime:
    return datetime(dt.year, dt.month, 1)


def start_of_next_month(dt: datetime) -> datetime:
    # The 1st plus 32 days always falls in the following month
    return start_of_month(start_of_month(dt) + timedelta(days=32))
