"""Booking price calculation."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from ..domain.time_range import TimeRange

_CENTS = Decimal("0.01")


def _to_decimal(value: Union[Decimal, int, float, str]) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class PricingService:
    """Hourly pricing: every started hour is charged in full."""

    @staticmethod
    def quote(time_range: TimeRange, hourly_rate: Union[Decimal, int, float, str]) -> Decimal:
        rate = _to_decimal(hourly_rate)
        return (rate * time_range.billable_hours).quantize(_CENTS, rounding=ROUND_HALF_UP)
