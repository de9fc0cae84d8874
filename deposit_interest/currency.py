"""
Decimal Precision Module

Conversion and rounding helpers for amounts and rates. NEVER uses float for
monetary values: floats are converted through their string form.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from typing import Union
import re

# Set global decimal context for financial precision
getcontext().prec = 28

Number = Union[Decimal, int, float, str]

CURRENCY_NOISE = re.compile(r'(?i)\s+|%|kr\.?|isk|[$€£]')
GROUPED_NUMBER = re.compile(r'^[+-]?\d[\d.,]*$')


def to_decimal(value: Number) -> Decimal:
    """
    Convert a number or numeric string to Decimal

    Raises:
        ValueError: If value cannot be represented as a finite Decimal
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError("Boolean is not a valid amount")
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        result = decimal_from_string(value)
    else:
        raise ValueError(f"Cannot convert {type(value).__name__} to Decimal")

    if not result.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}")
    return result


def decimal_from_string(value: str) -> Decimal:
    """
    Safely convert string to Decimal, handling common formats

    Args:
        value: String representation of number, e.g. "9,25", "1.000.000" or "7.50"

    Returns:
        Decimal value

    Raises:
        ValueError: If string cannot be converted to valid Decimal
    """
    if not value or not isinstance(value, str):
        raise ValueError("Value must be a non-empty string")

    # Remove currency symbols, percent signs and whitespace only
    clean_value = CURRENCY_NOISE.sub('', value)

    if not GROUPED_NUMBER.match(clean_value):
        # Plain Decimal syntax, including exponents such as 1e6
        try:
            return Decimal(clean_value)
        except InvalidOperation:
            raise ValueError(f"Cannot convert '{value}' to Decimal")

    if ',' in clean_value and '.' in clean_value:
        # Both separators - the last one is the decimal separator
        if clean_value.rfind(',') > clean_value.rfind('.'):
            clean_value = clean_value.replace('.', '').replace(',', '.')
        else:
            clean_value = clean_value.replace(',', '')
    elif clean_value.count(',') == 1:
        # Single comma - Icelandic decimal separator, e.g. "9,250"
        clean_value = clean_value.replace(',', '.')
    elif clean_value.count(',') > 1:
        # Comma thousands separators, e.g. 1,000,000
        clean_value = clean_value.replace(',', '')
    elif clean_value.count('.') > 1:
        # Dotted thousands separators, e.g. 1.000.000
        clean_value = clean_value.replace('.', '')

    try:
        return Decimal(clean_value)
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to Decimal")


def quantize_to(value: Decimal, places: int) -> Decimal:
    """
    Round a Decimal to a fixed number of decimal places

    Args:
        value: Decimal to round
        places: Number of decimal places (0 for whole currency units)

    Returns:
        Rounded Decimal
    """
    return value.quantize(Decimal('0.1') ** places, rounding=ROUND_HALF_UP)
