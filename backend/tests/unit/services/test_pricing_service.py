from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from parkbook.domain.time_range import TimeRange
from parkbook.services.pricing_service import PricingService

START = datetime(2030, 6, 1, 9, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "minutes, rate, expected",
    [
        (60, Decimal("2.50"), Decimal("2.50")),
        (90, Decimal("2.50"), Decimal("5.00")),
        (15, Decimal("4"), Decimal("4.00")),
        (180, "1.333", Decimal("4.00")),
        (120, 0, Decimal("0.00")),
    ],
)
def test_every_started_hour_is_charged(minutes, rate, expected):
    time_range = TimeRange(START, START + timedelta(minutes=minutes))
    assert PricingService.quote(time_range, rate) == expected
