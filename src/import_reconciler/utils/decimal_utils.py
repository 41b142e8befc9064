"""Decimal utilities for transaction amounts.

All monetary arithmetic uses Decimal to avoid floating-point drift when
summing selection totals.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


def to_decimal(value: object) -> Decimal:
    """Convert a JSON amount (number or string) to Decimal.

    Floats go through ``str`` first so that 9.99 stays 9.99.

    Args:
        value: Amount value from a payload.

    Returns:
        Decimal amount.

    Raises:
        ValueError: If the value is missing or not numeric.
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    if isinstance(value, Decimal):
        return value
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return result


def sum_amounts(amounts: list[Decimal]) -> Decimal:
    """Sum a list of Decimal amounts.

    Args:
        amounts: List of Decimal amounts.

    Returns:
        Sum as Decimal (Decimal("0") for an empty list).
    """
    total = Decimal("0")
    for amount in amounts:
        total += amount
    return total


def format_amount(amount: Decimal, decimal_places: int = 2) -> str:
    """Format an amount with thousands separators for console output.

    Args:
        amount: Amount to format.
        decimal_places: Number of decimal places.

    Returns:
        Formatted string, e.g. "-1,234.50".
    """
    quantum = Decimal(1).scaleb(-decimal_places)
    rounded = amount.quantize(quantum, rounding=ROUND_HALF_UP)
    return f"{rounded:,.{decimal_places}f}"
