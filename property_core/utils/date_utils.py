"""Date arithmetic shared by services and dashboards."""

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional, Tuple


def to_datetime_range(
    date_from: Optional[Any], date_to: Optional[Any]
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Normalize date/datetime bounds to UTC datetimes.

    A plain ``date`` upper bound covers the whole day.
    """

    def _convert(value, end_of_day: bool):
        if value is None:
            return None
        if isinstance(value, datetime):
            return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        if isinstance(value, date):
            moment = datetime.combine(value, time.min, tzinfo=timezone.utc)
            return moment + timedelta(days=1) - timedelta(microseconds=1) if end_of_day else moment
        raise TypeError(f"Unsupported date bound: {value!r}")

    return _convert(date_from, False), _convert(date_to, True)


def add_months(value: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = value.year * 12 + value.month - 1 + months
    year, month = divmod(month_index, 12)
    month += 1
    return date(year, month, min(value.day, _days_in_month(year, month)))


def _days_in_month(year: int, month: int) -> int:
    if month == 12:
        return 31
    return (date(year, month + 1, 1) - timedelta(days=1)).day


def month_start(value: date) -> date:
    return value.replace(day=1)


def month_end(value: date) -> date:
    return value.replace(day=_days_in_month(value.year, value.month))


def month_key(value: date) -> str:
    """``YYYY-MM``"""
    return f"{value.year:04d}-{value.month:02d}"


def month_label(value: date) -> str:
    """``Jan 2026``"""
    return value.strftime("%b %Y")


def months_between(start: date, end: date) -> int:
    """Whole months from ``start`` to ``end``; a partial final month counts as one."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day > start.day:
        months += 1
    return max(months, 0)


def age_on(date_of_birth: date, on: date) -> int:
    """Age in completed years."""
    had_birthday = (on.month, on.day) >= (date_of_birth.month, date_of_birth.day)
    return on.year - date_of_birth.year - (0 if had_birthday else 1)
