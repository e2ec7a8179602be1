"""Unit tests for the half-open interval model."""

from datetime import date, datetime, timedelta, timezone

import pytest

from parkbook.core.exceptions import ValidationException
from parkbook.domain.time_range import (
    TimeRange,
    day_range,
    ensure_utc,
    hourly_slots,
    month_windows,
    overlaps,
)

NINE = datetime(2030, 6, 1, 9, 0, tzinfo=timezone.utc)


def _range(start_hour: float, end_hour: float) -> TimeRange:
    return TimeRange(NINE + timedelta(hours=start_hour - 9), NINE + timedelta(hours=end_hour - 9))


class TestConstruction:
    def test_end_must_be_after_start(self):
        with pytest.raises(ValidationException) as exc_info:
            TimeRange(NINE, NINE)
        assert exc_info.value.code == "INVALID_TIME_RANGE"

        with pytest.raises(ValidationException):
            TimeRange(NINE, NINE - timedelta(minutes=1))

    def test_missing_bounds_are_rejected(self):
        with pytest.raises(ValidationException) as exc_info:
            TimeRange.from_optional(NINE, None)
        assert exc_info.value.code == "MISSING_TIME_RANGE"

        with pytest.raises(ValidationException):
            TimeRange.from_optional(None, NINE)

    def test_naive_datetimes_are_taken_as_utc(self):
        naive = datetime(2030, 6, 1, 9, 0)
        time_range = TimeRange(naive, naive + timedelta(hours=1))
        assert time_range.start == NINE
        assert time_range.start.tzinfo is not None

    def test_offsets_are_normalized_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        start = datetime(2030, 6, 1, 11, 0, tzinfo=plus_two)
        time_range = TimeRange(start, start + timedelta(hours=1))
        assert time_range.start == NINE
        assert time_range.start.utcoffset() == timedelta(0)

    def test_ensure_utc(self):
        assert ensure_utc(datetime(2030, 6, 1, 9)) == NINE


class TestOverlap:
    def test_touching_ranges_do_not_overlap(self):
        assert not overlaps(_range(9, 11), _range(11, 12))
        assert not overlaps(_range(11, 12), _range(9, 11))

    def test_partial_overlap(self):
        assert overlaps(_range(9, 10), _range(9.5, 10.5))
        assert overlaps(_range(9.5, 10.5), _range(9, 10))

    def test_containment_overlaps(self):
        assert overlaps(_range(9, 12), _range(10, 11))
        assert overlaps(_range(10, 11), _range(9, 12))

    def test_identical_ranges_overlap(self):
        assert overlaps(_range(9, 10), _range(9, 10))

    def test_disjoint_ranges(self):
        assert not overlaps(_range(9, 10), _range(13, 14))


class TestBillableHours:
    @pytest.mark.parametrize(
        "minutes, expected",
        [(30, 1), (60, 1), (61, 2), (150, 3), (24 * 60, 24)],
    )
    def test_partial_hours_round_up(self, minutes, expected):
        time_range = TimeRange(NINE, NINE + timedelta(minutes=minutes))
        assert time_range.billable_hours == expected


class TestCalendarWindows:
    def test_day_range_is_one_utc_day(self):
        day = day_range(date(2030, 6, 1))
        assert day.start == datetime(2030, 6, 1, tzinfo=timezone.utc)
        assert day.duration == timedelta(days=1)

    def test_hourly_slots_tile_the_window(self):
        slots = hourly_slots(day_range(date(2030, 6, 1)))

        assert len(slots) == 24
        assert slots[9] == _range(9, 10)
        assert all(a.end == b.start for a, b in zip(slots, slots[1:]))

    def test_hourly_slots_clip_the_tail(self):
        slots = hourly_slots(_range(9, 10.5))
        assert [slot.duration for slot in slots] == [timedelta(hours=1), timedelta(minutes=30)]

    def test_month_windows_cross_the_year(self):
        windows = month_windows(datetime(2030, 2, 14, 8, tzinfo=timezone.utc), 3)

        assert [(w.start.year, w.start.month) for w in windows] == [(2029, 12), (2030, 1), (2030, 2)]
        assert windows[0].end == windows[1].start
        assert windows[-1].end == datetime(2030, 3, 1, tzinfo=timezone.utc)

    def test_december_window_ends_in_january(self):
        (window,) = month_windows(datetime(2030, 12, 31, 23, tzinfo=timezone.utc), 1)
        assert window.end == datetime(2031, 1, 1, tzinfo=timezone.utc)
