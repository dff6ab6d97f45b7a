"""Timestamp normalization for remote n8n values and SQLite round-trips."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def as_utc(value: datetime | None) -> datetime | None:
    """Aware UTC datetime; naive values (SQLite drops offsets) are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value) -> datetime | None:
    if isinstance(value, datetime):
        return as_utc(value)
    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(raw))
    except ValueError:
        return None


def same_instant(a: datetime | None, b: datetime | None) -> bool:
    if a is None or b is None:
        return False
    return as_utc(a) == as_utc(b)


def duration_ms(started: datetime | None, stopped: datetime | None) -> int | None:
    if started is None or stopped is None:
        return None
    return (as_utc(stopped) - as_utc(started)) // timedelta(milliseconds=1)
