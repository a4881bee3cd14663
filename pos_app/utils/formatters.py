"""
Formatting helpers for user-facing POS messages.
"""
from decimal import Decimal, InvalidOperation
from typing import Union, Optional

DEFAULT_CURRENCY = 'PKR'


def money(value: Union[int, float, Decimal, str, None], currency: Optional[str] = DEFAULT_CURRENCY) -> str:
    """
    Format an amount with thousands separators and two decimals.

    Examples:
        money(1200) -> "PKR 1,200.00"
        money(Decimal('0.5'), None) -> "0.50"
        money(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    formatted = f"{num:,.2f}"
    if currency:
        return f"{currency} {formatted}"
    return formatted


def quantity(value: Union[int, float, Decimal, None], unit: Optional[str] = None) -> str:
    """Format a whole quantity with its unit, e.g. "3 units"."""
    if value is None:
        return "-"
    text = f"{int(value):,}"
    return f"{text} {unit or 'units'}"
