"""Number parsing and rounding utilities for POS amounts."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal('0.01')
ZERO = Decimal('0')
HUNDRED = Decimal('100')


def round2(value: Decimal) -> Decimal:
    """Round a monetary value to cents, half up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value) -> Decimal:
    """
    Parse an amount coming from a JSON payload or form into a Decimal.

    Accepts Decimal, int, float and numeric strings. Floats are converted
    through str() so 0.1 stays 0.1.

    Raises:
        ValueError: if the value is empty or not numeric.
    """
    if value is None:
        raise ValueError('Invalid amount: value is required')
    if isinstance(value, bool):
        raise ValueError(f'Invalid amount: {value!r}')
    if isinstance(value, Decimal):
        decimal_value = value
    else:
        cleaned = str(value).strip().replace(',', '')
        if not cleaned:
            raise ValueError('Invalid amount: value is required')
        try:
            decimal_value = Decimal(cleaned)
        except (InvalidOperation, ValueError):
            raise ValueError(f'Invalid amount: {value!r}')

    if not decimal_value.is_finite():
        raise ValueError(f'Invalid amount: {value!r}')
    return decimal_value


def parse_optional_amount(value):
    """Same as parse_amount but maps None/'' to None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_amount(value)
