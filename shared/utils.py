"""Date and formatting helpers."""

import calendar
from datetime import date, timedelta
from typing import Optional

EPOCH = date(1970, 1, 1)


def to_epoch_day(value: date) -> int:
    """Returns the number of days between 1970-01-01 and `value`."""
    return (value - EPOCH).days


def from_epoch_day(epoch_day: int) -> date:
    return EPOCH + timedelta(days=epoch_day)


def today_epoch_day(today: Optional[date] = None) -> int:
    return to_epoch_day(today or date.today())


def add_months(value: date, months: int) -> date:
    """
    Shifts `value` by a number of calendar months.

    The day of month is clamped to the length of the target month, so
    Jan 31 + 1 month is Feb 28 (or 29).
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def months_between(start: date, end: date) -> int:
    """Whole calendar months from `start` to `end`."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if months > 0 and end.day < start.day:
        months -= 1
    elif months < 0 and end.day > start.day:
        months += 1
    return months


def digits_only(raw: str) -> str:
    return "".join(ch for ch in raw if ch.isdigit())


def format_phone_number(raw: str) -> str:
    """
    Formats a phone number for display.

    5551234567 -> 555-123-4567, 5551234 -> 555-1234. Any other length is
    returned as bare digits.
    """
    digits = digits_only(raw)
    if len(digits) == 10:
        return f"{digits[:3]}-{digits[3:6]}-{digits[6:]}"
    if len(digits) == 7:
        return f"{digits[:3]}-{digits[3:]}"
    return digits
