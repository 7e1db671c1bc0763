"""Percentage helpers shared by the dashboards."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

Number = Union[int, float, Decimal]


def _round(value: Decimal, places: int) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(value.quantize(quantum, rounding=ROUND_HALF_UP))


def calculate_trend_percentage(
    current: Optional[Number], previous: Optional[Number]
) -> Optional[float]:
    """
    Period-over-period change as a percentage, rounded to 2 decimals.

    Returns None when there is no previous value to compare against.
    """
    if previous is None or Decimal(str(previous)) == 0:
        return None
    current_value = Decimal(str(current or 0))
    previous_value = Decimal(str(previous))
    return _round((current_value - previous_value) / previous_value * 100, 2)


def calculate_percentage(part: Optional[Number], total: Optional[Number], places: int = 2) -> float:
    """Share of ``total`` taken by ``part``; 0 when the total is 0."""
    if not total or Decimal(str(total)) == 0:
        return 0.0
    return _round(Decimal(str(part or 0)) / Decimal(str(total)) * 100, places)
