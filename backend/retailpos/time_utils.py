from __future__ import annotations

import time
from datetime import date, datetime, timedelta, timezone
from typing import Optional

_EPOCH = datetime(1970, 1, 1)


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def now_ms() -> int:
    """Current time as epoch milliseconds (the unit sales, returns and shifts are stamped in)."""
    return int(time.time() * 1000)


def ms_to_datetime(ms: int) -> datetime:
    """
    Convert epoch milliseconds to a naive UTC datetime.

    Datetime columns (expenses, purchases) are stored naive UTC, so every
    epoch-ms period boundary must pass through here before being compared
    against them. 0 maps to 1970-01-01 00:00:00.
    """
    return _EPOCH + timedelta(milliseconds=int(ms))


def datetime_to_ms(dt: datetime) -> int:
    """Inverse of ms_to_datetime. Aware datetimes are converted to UTC first."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return (dt - _EPOCH) // timedelta(milliseconds=1)


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse 'YYYY-MM-DD' (or a full ISO datetime, keeping only the date)."""
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    if len(s) > 10:
        return parse_iso_datetime(s).date()
    return date.fromisoformat(s)


def day_bounds_ms(start: date, end: Optional[date] = None) -> tuple[int, int]:
    """
    Epoch-ms bounds covering whole UTC days: start 00:00:00.000 through
    end 23:59:59.999 (end defaults to start).
    """
    end = end or start
    start_ms = datetime_to_ms(datetime(start.year, start.month, start.day))
    end_ms = datetime_to_ms(datetime(end.year, end.month, end.day) + timedelta(days=1)) - 1
    return start_ms, end_ms


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    if dt.tzinfo is None:
        return dt

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
