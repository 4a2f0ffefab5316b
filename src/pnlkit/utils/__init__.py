"""Utility functions for pnlkit."""

from pnlkit.utils.date_parser import parse_date, parse_month
from pnlkit.utils.amount_parser import parse_amount, parse_positive_amount
from pnlkit.utils.period import format_period, parse_period

__all__ = [
    "parse_date",
    "parse_month",
    "parse_amount",
    "parse_positive_amount",
    "format_period",
    "parse_period",
]
