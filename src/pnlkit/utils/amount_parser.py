"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re

_CURRENCY_RE = re.compile(r"(?i)\b(ron|lei|eur|usd)\b|[$€£¥]")


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles:
    - "1234.56", "1,234.56"
    - "1.234,56" (comma as decimal separator)
    - "1234.56 RON", "€1234.56", "lei 99"

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    cleaned = _CURRENCY_RE.sub("", amount_str).strip().replace(" ", "")

    # When both separators appear the last one is the decimal separator
    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        whole, _, fraction = cleaned.rpartition(",")
        if len(fraction) == 3 and whole:
            cleaned = cleaned.replace(",", "")
        else:
            cleaned = f"{whole.replace(',', '')}.{fraction}"

    try:
        return Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"Could not parse amount '{amount_str}'")


def parse_positive_amount(amount_str: str) -> Decimal:
    """Parse an amount that must be greater than zero.

    Raises:
        ValueError: If the string is not a positive amount
    """
    amount = parse_amount(amount_str)
    if amount <= 0:
        raise ValueError(f"Amount must be positive, got {amount}")
    return amount
