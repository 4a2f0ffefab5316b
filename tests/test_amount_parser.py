"""Tests for amount parsing."""

import pytest
from decimal import Decimal

from pnlkit.utils.amount_parser import parse_amount, parse_positive_amount


@pytest.mark.parametrize(
    "text,expected",
    [
        ("1234.56", "1234.56"),
        ("1,234.56", "1234.56"),
        ("1.234,56", "1234.56"),
        ("99,5", "99.5"),
        ("1,000", "1000"),
        ("1234.56 RON", "1234.56"),
        ("lei 99", "99"),
        ("€1234.56", "1234.56"),
        ("-50.00", "-50.00"),
    ],
)
def test_parse_amount(text, expected):
    """Test the supported number and currency formats."""
    assert parse_amount(text) == Decimal(expected)


def test_parse_amount_empty():
    with pytest.raises(ValueError, match="Empty amount"):
        parse_amount("  ")


def test_parse_amount_invalid():
    with pytest.raises(ValueError, match="Could not parse amount"):
        parse_amount("twelve")


def test_parse_positive_amount_rejects_zero_and_negative():
    """Test that only positive amounts pass."""
    assert parse_positive_amount("10") == Decimal("10")
    with pytest.raises(ValueError, match="positive"):
        parse_positive_amount("0")
    with pytest.raises(ValueError, match="positive"):
        parse_positive_amount("-5")
