"""
Fixed-precision rounding shared by every tier.

Values are rounded half-up through Decimal so that repeated aggregation
across tiers does not drift with binary float rounding.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Union

Number = Union[int, float, Decimal]

# Decimal places per stored quantity
ENERGY_PLACES = 2        # kWh totals at daily/weekly/monthly tier
SUB_UNIT_PLACES = 4      # kWh of a single flush window
ELECTRICAL_PLACES = 2    # voltage, current, power factor, frequency, watts


def to_decimal(value: Number) -> Decimal:
    """Convert via str() so 0.1 becomes Decimal('0.1'), not its binary expansion."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value: Number, places: int) -> Decimal:
    """Round half-up to a fixed number of decimal places."""
    exponent = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP)


def round_to(value: Optional[Number], places: int) -> Optional[float]:
    """Round half-up and return a float, passing None through."""
    if value is None:
        return None
    return float(quantize(value, places))


def round_energy(value: Optional[Number]) -> Optional[float]:
    return round_to(value, ENERGY_PLACES)


def round_sub_unit(value: Optional[Number]) -> Optional[float]:
    return round_to(value, SUB_UNIT_PLACES)


def round_electrical(value: Optional[Number]) -> Optional[float]:
    return round_to(value, ELECTRICAL_PLACES)


def exact_sum(values: Iterable[Optional[Number]]) -> Decimal:
    """Sum stored values exactly; missing values count as zero."""
    total = Decimal(0)
    for value in values:
        if value is not None:
            total += to_decimal(value)
    return total
