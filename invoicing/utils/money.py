"""
Money helpers shared by the totals, pricing and view code.
Amounts are kept as Decimal throughout and rounded half-up to cents.
"""

import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
ZERO = Decimal('0')
HUNDRED = Decimal('100')


def ensure_decimal(value, default=ZERO):
    """Convert various types to Decimal safely.

    Strings may carry thousands separators, spaces or a trailing percent
    sign. Anything that cannot be read as a finite number yields `default`.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        return value if value.is_finite() else default
    try:
        if isinstance(value, str):
            cleaned = value.strip().replace(',', '').replace(' ', '').rstrip('%')
            if not cleaned or cleaned in ('.', '-'):
                return default
            result = Decimal(cleaned)
        else:
            result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        logger.debug(f"Failed to convert value to Decimal: {value!r} (type: {type(value).__name__})")
        return default
    return result if result.is_finite() else default


def quantize_money(value) -> Decimal:
    """Round to cents, half-up."""
    return ensure_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount, percent) -> Decimal:
    """`percent`% of `amount`, unrounded."""
    return ensure_decimal(amount) * ensure_decimal(percent) / HUNDRED


def format_money(value) -> str:
    """Format an amount as a dollar string, e.g. 1234.5 -> '$1,234.50'."""
    amount = quantize_money(value)
    sign = '-' if amount < 0 else ''
    return f"{sign}${abs(amount):,.2f}"
