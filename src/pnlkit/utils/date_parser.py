"""Date and month parsing utilities."""

from datetime import date, timedelta
from typing import Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from pnlkit.utils.period import parse_period


def parse_date(date_str: str, today: Optional[date] = None) -> date:
    """Parse a date string into a date object.

    Supports:
    - Absolute dates: "2024-01-15", "January 15, 2024", etc.
    - Relative dates: "today", "yesterday", "tomorrow"

    Args:
        date_str: Date string
        today: Reference date for relative values (defaults to date.today())

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = today or date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }
    if date_str in relative_dates:
        return relative_dates[date_str]

    try:
        return date_parser.parse(date_str).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def parse_month(month_str: str, today: Optional[date] = None) -> date:
    """Parse a month reference into the first day of that month.

    Supports "YYYY-MM", full dates (the day is dropped) and the relative
    values "this month", "last month" and "next month".

    Args:
        month_str: Month string
        today: Reference date for relative values (defaults to date.today())

    Returns:
        First day of the month

    Raises:
        ValueError: If the string cannot be parsed
    """
    value = month_str.strip().lower()
    today = today or date.today()
    current = today.replace(day=1)

    relative_months = {
        "this month": current,
        "last month": current - relativedelta(months=1),
        "next month": current + relativedelta(months=1),
    }
    if value in relative_months:
        return relative_months[value]

    try:
        year, month = parse_period(value)
        return date(year, month, 1)
    except ValueError:
        pass

    return parse_date(value, today=today).replace(day=1)
