"""Shared date and time helpers used across the booking modules."""

from datetime import date, datetime, time, timedelta, timezone
from typing import Union

WEEKDAY_NAMES = (
    "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
)


def sunday_based_weekday(day: date) -> int:
    """Return the day of week with Sunday as 0 and Saturday as 6.

    Examples:
        >>> sunday_based_weekday(date(2026, 10, 18))
        0
        >>> sunday_based_weekday(date(2026, 10, 19))
        1
    """
    return (day.weekday() + 1) % 7


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; aware ones are returned unchanged."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def format_time_for_display(value: Union[time, datetime]) -> str:
    """Render a time as a 12-hour clock string, e.g. ``09:30 AM``."""
    return value.strftime("%I:%M %p")


def next_n_days(start: date, n: int) -> list[date]:
    """Return ``n`` consecutive dates beginning with ``start``."""
    return [start + timedelta(days=offset) for offset in range(n)]
