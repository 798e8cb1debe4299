"""
Conversion between major currency units (Naira, Dollars) and minor units
(kobo, cents).

All arithmetic is done on Decimal so that amounts never pick up binary
floating point error on the way to a provider.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

MINOR_UNITS_PER_MAJOR = 100

_CENT = Decimal('0.01')
_ONE = Decimal('1')


def to_decimal(value) -> Decimal:
    """
    Coerce an int, float, str or Decimal into a Decimal.

    Floats go through their shortest repr so that 500.5 becomes
    Decimal('500.5') rather than its binary approximation.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValueError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount


def to_minor_units(amount_major) -> int:
    """Major -> minor, rounding half up to the nearest minor unit (500.5 -> 50050)."""
    amount = to_decimal(amount_major) * MINOR_UNITS_PER_MAJOR
    return int(amount.quantize(_ONE, rounding=ROUND_HALF_UP))


def to_major_units(amount_minor) -> Decimal:
    """Minor -> major as a two place Decimal (50050 -> Decimal('500.50'))."""
    amount = to_decimal(amount_minor) / MINOR_UNITS_PER_MAJOR
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


def quantize_major(amount_major) -> Decimal:
    """Round a major unit amount to whole minor units."""
    return to_decimal(amount_major).quantize(_CENT, rounding=ROUND_HALF_UP)
