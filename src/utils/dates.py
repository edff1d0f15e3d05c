"""Calendar helpers shared by the key scheme and the month-bucket queries."""

import calendar
import re
from datetime import date, datetime
from typing import List, Optional, Tuple

_ISO_DATE_PREFIX = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def parse_iso_date(value: str) -> Optional[date]:
    """
    Parse a service date string.

    Accepts ``YYYY-MM-DD`` and full ISO datetimes starting with one (the
    time part is dropped). Compact and week forms such as ``20240115``
    or ``2024-W03-1`` are rejected. Returns None when the value cannot
    be parsed.
    """
    value = value.strip()
    if not _ISO_DATE_PREFIX.match(value):
        return None
    try:
        if len(value) == 10:
            return date.fromisoformat(value)
        if value[10] not in "T ":
            return None
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def format_date(value: date) -> str:
    """Format a date as ``YYYY-MM-DD`` (four-digit year, zero padded)."""
    return value.isoformat()


def extract_year_month(date_string: str) -> str:
    """``YYYY-MM-DD`` -> ``YYYY-MM``."""
    return date_string[:7]


def generate_month_range(start: date, end: date) -> List[str]:
    """
    List the ``YYYY-MM`` buckets between two dates, both inclusive.

    Returns an empty list when ``start`` falls after ``end``.
    """
    months = []
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        months.append(f"{year:04d}-{month:02d}")
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return months


def month_bounds(year_month: str) -> Tuple[date, date]:
    """First and last calendar day of a ``YYYY-MM`` bucket."""
    year, month = (int(part) for part in year_month.split("-"))
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def subtract_months(value: date, months: int) -> date:
    """Step back a number of calendar months, clamping the day (Mar 31 - 1 -> Feb 28/29)."""
    index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)
