# src/taskboard/tasks/dates.py

"""
Date helpers shared by the filter pipeline, materializers and summaries.

All comparisons happen on timezone-aware datetimes. Naive values coming from a
backend (or a bare "YYYY-MM-DD" due date) are interpreted in the local zone,
the same way a browser's Date() would read them.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any

END_OF_DAY = time(23, 59, 59, 999000)


def local_now() -> datetime:
    return datetime.now().astimezone()


def to_aware(dt: datetime, tz: tzinfo | None = None) -> datetime:
    if dt.tzinfo is not None:
        return dt
    if tz is not None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone()


def parse_timestamp(raw: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp (or date) into an aware datetime; None when unparseable."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return to_aware(raw)
    if isinstance(raw, date):
        return to_aware(datetime.combine(raw, time.min))
    if not isinstance(raw, str):
        return None
    try:
        return to_aware(datetime.fromisoformat(raw.strip()))
    except ValueError:
        return None


def format_timestamp(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


def start_of_day(dt: datetime) -> datetime:
    return datetime.combine(dt.date(), time.min, tzinfo=dt.tzinfo)


def end_of_day(dt: datetime) -> datetime:
    return datetime.combine(dt.date(), END_OF_DAY, tzinfo=dt.tzinfo)


def add_days(dt: datetime, days: int) -> datetime:
    # Calendar arithmetic on the wall clock, so DST shifts keep midnight at midnight.
    return datetime.combine(dt.date() + timedelta(days=days), dt.timetz())


def parse_date_input(
    value: str | date | None,
    *,
    end_of_day: bool = False,
    tz: tzinfo | None = None,
) -> datetime | None:
    """
    Turn a filter input ("YYYY-MM-DD" or a full timestamp) into a day boundary.

    Returns 00:00:00.000 of that day, or 23:59:59.999 when end_of_day is set.
    Empty or invalid input means "no boundary" (None).
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        day = value.date()
    elif isinstance(value, date):
        day = value
    else:
        parsed = parse_timestamp(value)
        if parsed is None:
            return None
        day = parsed.date()

    boundary = datetime.combine(day, END_OF_DAY if end_of_day else time.min)
    return to_aware(boundary, tz)


def day_key(dt: datetime, tz: tzinfo | None = None) -> str:
    """YYYY-MM-DD of dt as seen from tz (defaults to dt's own zone)."""
    if tz is not None:
        dt = dt.astimezone(tz)
    return dt.date().isoformat()
