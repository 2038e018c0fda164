"""
Period helpers.

A period is a year-month key in the canonical ``YYYY-MM`` format. It is the
unit of budgeting, aggregation and recurrence scheduling. All arithmetic is
done on (year, month) integers, never by adding a number of days.
"""
import re
from calendar import monthrange
from datetime import date
from typing import List, Optional, Tuple

MONTH_NAMES = [
    "Janeiro", "Fevereiro", "Março", "Abril", "Maio", "Junho",
    "Julho", "Agosto", "Setembro", "Outubro", "Novembro", "Dezembro",
]

_PERIOD_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


def parse_period(period: str) -> Tuple[int, int]:
    """
    Split a period key into (year, month).

    Raises:
        ValueError: If the key is not a valid ``YYYY-MM`` string
    """
    match = _PERIOD_PATTERN.match(period.strip())
    if not match:
        raise ValueError(f"Invalid period '{period}', expected YYYY-MM")

    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month in period '{period}'")

    return year, month


def make_period(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def period_of(day: date) -> str:
    """Period key a calendar day belongs to"""
    return make_period(day.year, day.month)


def current_period(today: Optional[date] = None) -> str:
    """Period key for today, in local time"""
    return period_of(today or date.today())


def shift_period(period: str, months: int) -> str:
    """Move a period by a signed number of months"""
    year, month = parse_period(period)
    index = year * 12 + (month - 1) + months
    return make_period(index // 12, index % 12 + 1)


def next_period(period: str) -> str:
    """Step forward one calendar month (2024-12 -> 2025-01)"""
    return shift_period(period, 1)


def previous_period(period: str) -> str:
    """Step back one calendar month (2025-01 -> 2024-12)"""
    return shift_period(period, -1)


def months_between(start: str, end: str) -> int:
    """Signed number of months from start to end"""
    start_year, start_month = parse_period(start)
    end_year, end_month = parse_period(end)
    return (end_year - start_year) * 12 + (end_month - start_month)


def period_range(start: str, end: str) -> List[str]:
    """
    All periods from start to end, both inclusive, in chronological order.

    Returns an empty list when start is after end.
    """
    return [shift_period(start, offset) for offset in range(months_between(start, end) + 1)]


def trailing_periods(count: int, end: str) -> List[str]:
    """Exactly `count` periods ending at `end`, oldest first"""
    return [shift_period(end, -offset) for offset in range(count - 1, -1, -1)]


def last_day_of_period(period: str) -> int:
    year, month = parse_period(period)
    _, last_day = monthrange(year, month)
    return last_day


def day_in_period(period: str, day: int) -> date:
    """
    Build a date inside the period, clamping the day to the month length.

    A day of 31 in February gives the 28th (29th in leap years), never a
    date in March.
    """
    year, month = parse_period(period)
    clamped = min(max(day, 1), last_day_of_period(period))
    return date(year, month, clamped)


def format_period(period: str) -> str:
    """Display name of a period, e.g. 'Março 2025'"""
    year, month = parse_period(period)
    return f"{MONTH_NAMES[month - 1]} {year}"
