"""Accounting period helpers.

An accounting period is a ``YYYY-MM`` string naming the month an expense is
attributed to in the P&L, independent of its calendar expense date.
"""

import calendar
import re
from datetime import date
from typing import Optional

from dateutil.relativedelta import relativedelta

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{1,2})$")

MONTHS_IN_WINDOW = 24


def format_period(year: int, month: int) -> str:
    """Format a year and month as ``YYYY-MM``."""
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")
    return f"{year:04d}-{month:02d}"


def parse_period(period: str) -> tuple[int, int]:
    """Parse ``YYYY-MM`` into (year, month).

    Raises:
        ValueError: If the string is not a valid period
    """
    match = _PERIOD_RE.match(period.strip()) if period else None
    if match is None:
        raise ValueError(f"Invalid accounting period '{period}', expected YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid accounting period '{period}': month out of range")
    return year, month


def period_of(day: date) -> str:
    """Return the period containing a date."""
    return format_period(day.year, day.month)


def first_of_month(day: date) -> date:
    return day.replace(day=1)


def add_months(day: date, months: int) -> date:
    return day + relativedelta(months=months)


def month_date(year: int, month: int, day_of_month: int = 1) -> date:
    """Build a date in the given month, clamping the day to the month's end."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(max(day_of_month, 1), last_day))


def attribution(accounting_period: Optional[str], expense_date: date) -> tuple[int, int]:
    """Return the (year, month) an expense is attributed to.

    The accounting period wins when present and well formed; otherwise the
    calendar month of the expense date is used.
    """
    if accounting_period:
        try:
            return parse_period(accounting_period)
        except ValueError:
            pass
    return expense_date.year, expense_date.month


def window_index(year: int, month: int, base_year: int) -> Optional[int]:
    """Map a month into the 24-slot window ending with base_year.

    Returns None for months outside [base_year - 1, base_year].
    """
    if year == base_year - 1:
        return month - 1
    if year == base_year:
        return month - 1 + 12
    return None


def iter_months(start: date, end: date):
    """Yield the first day of every month from start through end inclusive."""
    current = first_of_month(start)
    stop = first_of_month(end)
    while current <= stop:
        yield current
        current = add_months(current, 1)
