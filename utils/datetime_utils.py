"""Utilities for working with RFC3339 timestamps and UTC datetimes."""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional, Union

UTC = timezone.utc


def parse_rfc3339(s: Optional[str]) -> Optional[datetime]:
    """Parse a RFC3339 string and return a timezone-aware UTC datetime."""

    if not s:
        return None

    value = s.strip()
    if not value:
        return None

    if value.endswith("Z"):
        value = value[:-1] + "+00:00"

    if "." in value:
        head, tail = value.split(".", 1)
        if "+" in tail:
            frac, tz = tail.split("+", 1)
            sign = "+"
        elif "-" in tail:
            frac, tz = tail.split("-", 1)
            sign = "-"
        else:
            frac, tz = tail, "+00:00"
            sign = "+"
        frac = (frac + "000000")[:6]
        value = f"{head}.{frac}{sign}{tz}"
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    else:
        dt = dt.astimezone(UTC)
    return dt


def parse_timestamp(value: Union[datetime, date, str, None]) -> Optional[datetime]:
    """Coerce user input into an aware UTC datetime.

    Raises ``ValueError`` for strings that are not RFC3339/ISO dates.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=UTC)
    if isinstance(value, str):
        if not value.strip():
            return None
        parsed = parse_rfc3339(value)
        if parsed is None:
            raise ValueError(f"Invalid timestamp: {value!r}")
        return parsed
    raise ValueError(f"Unsupported timestamp type: {type(value).__name__}")


def to_rfc3339_utc(dt: Optional[Union[datetime, str]]) -> Optional[str]:
    """Convert a datetime (or string) to RFC3339 in UTC with second precision."""

    if dt is None:
        return None
    if isinstance(dt, str):
        dt = parse_rfc3339(dt)
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    else:
        dt = dt.astimezone(UTC)
    return dt.replace(microsecond=0).isoformat().replace("+00:00", "Z")


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_storage(dt: Optional[datetime]) -> Optional[datetime]:
    """Naive UTC value as SQLite stores it; keeps comparisons in SQL consistent."""
    normalized = ensure_utc(dt)
    return normalized.replace(tzinfo=None) if normalized is not None else None


def utc_now() -> datetime:
    return datetime.now(UTC)


__all__ = [
    "UTC",
    "ensure_utc",
    "parse_rfc3339",
    "parse_timestamp",
    "to_rfc3339_utc",
    "to_storage",
    "utc_now",
]
