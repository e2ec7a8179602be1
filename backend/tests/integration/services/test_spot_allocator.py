"""
Spot allocation against a real database.

Covers the lowest-spot tie-break, agreement between find_spot and
count_available, the half-open boundary between adjacent bookings, and the
per-day slot listing.
"""

from datetime import date, timedelta

import pytest

from parkbook.core.exceptions import NotFoundException, ValidationException
from parkbook.domain.time_range import TimeRange
from parkbook.services.spot_allocator import SpotAllocator


def _range(start, hours: float = 1) -> TimeRange:
    return TimeRange(start, start + timedelta(hours=hours))


@pytest.fixture
def allocator(db):
    return SpotAllocator(db)


class TestFindSpot:
    def test_empty_lot_gives_spot_one(self, allocator, lot, tomorrow_9am):
        assert allocator.find_spot(lot.id, _range(tomorrow_9am), lot.total_spots) == 1

    def test_lowest_free_spot_wins(self, allocator, booking_service, make_lot, alice, tomorrow_9am):
        big_lot = make_lot(total_spots=5)
        for _ in range(3):
            booking_service.create_booking(alice, big_lot.id, tomorrow_9am, tomorrow_9am + timedelta(hours=1))

        assert allocator.free_spots(big_lot.id, _range(tomorrow_9am), 5) == [4, 5]
        assert allocator.find_spot(big_lot.id, _range(tomorrow_9am), 5) == 4

    def test_freed_low_spot_is_reused(self, allocator, booking_service, lot, alice, tomorrow_9am):
        end = tomorrow_9am + timedelta(hours=1)
        first = booking_service.create_booking(alice, lot.id, tomorrow_9am, end)
        booking_service.create_booking(alice, lot.id, tomorrow_9am, end)
        booking_service.cancel_booking(first.id, alice)

        assert allocator.find_spot(lot.id, _range(tomorrow_9am), lot.total_spots) == 1

    def test_full_lot_has_no_spot(self, allocator, booking_service, make_lot, alice, tomorrow_9am):
        small_lot = make_lot(total_spots=1)
        booking_service.create_booking(alice, small_lot.id, tomorrow_9am, tomorrow_9am + timedelta(hours=2))

        later = _range(tomorrow_9am + timedelta(minutes=30))
        assert allocator.find_spot(small_lot.id, later, 1) is None
        assert allocator.count_available(small_lot.id, later, 1) == 0

    def test_find_spot_for_lot_unknown_lot(self, allocator, tomorrow_9am):
        with pytest.raises(NotFoundException):
            allocator.find_spot_for_lot("missing-lot", _range(tomorrow_9am))

    def test_lot_without_spots_is_rejected(self, allocator, lot, tomorrow_9am):
        with pytest.raises(ValidationException):
            allocator.find_spot(lot.id, _range(tomorrow_9am), 0)


class TestConsistency:
    def test_count_and_find_agree(self, allocator, booking_service, lot, alice, bob, tomorrow_9am):
        query = _range(tomorrow_9am, hours=2)
        while True:
            count = allocator.count_available(lot.id, query, lot.total_spots)
            spot = allocator.find_spot(lot.id, query, lot.total_spots)
            assert (count > 0) == (spot is not None)
            if spot is None:
                break
            booking_service.create_booking(bob, lot.id, query.start, query.end)

        assert count == 0

    def test_half_open_boundary(self, allocator, booking_service, make_lot, alice, tomorrow_9am):
        small_lot = make_lot(total_spots=1)
        nine_to_eleven = _range(tomorrow_9am, hours=2)
        booking_service.create_booking(alice, small_lot.id, nine_to_eleven.start, nine_to_eleven.end)

        eleven_to_noon = _range(nine_to_eleven.end)
        assert allocator.find_spot(small_lot.id, eleven_to_noon, 1) == 1
        assert allocator.is_spot_free(small_lot.id, 1, eleven_to_noon)
        assert not allocator.is_spot_free(
            small_lot.id, 1, _range(nine_to_eleven.end - timedelta(minutes=1))
        )


class TestFreeSlotsForDay:
    def test_empty_day_has_every_hour(self, allocator, lot, tomorrow_9am):
        day_slots = allocator.free_slots_for_day(lot.id, tomorrow_9am.date())

        assert day_slots.lot.id == lot.id
        assert [spot.spot_number for spot in day_slots.spots] == [1, 2, 3]
        assert all(len(spot.free_slots) == 24 for spot in day_slots.spots)

    def test_booked_hours_are_removed_from_that_spot_only(
        self, allocator, booking_service, lot, alice, tomorrow_9am
    ):
        booking_service.create_booking(
            alice, lot.id, tomorrow_9am, tomorrow_9am + timedelta(minutes=90)
        )

        spots = allocator.free_slots_for_day(lot.id, tomorrow_9am.date()).spots
        spot_one_hours = [slot.start.hour for slot in spots[0].free_slots]
        assert 9 not in spot_one_hours
        assert 10 not in spot_one_hours
        assert 8 in spot_one_hours and 11 in spot_one_hours
        assert len(spots[0].free_slots) == 22
        assert len(spots[1].free_slots) == 24

    def test_agrees_with_is_spot_free(self, allocator, booking_service, lot, alice, bob, tomorrow_9am):
        booking_service.create_booking(alice, lot.id, tomorrow_9am, tomorrow_9am + timedelta(hours=2))
        booking_service.create_booking(
            bob, lot.id, tomorrow_9am + timedelta(minutes=30), tomorrow_9am + timedelta(hours=1)
        )
        booking_service.create_booking(
            bob, lot.id, tomorrow_9am + timedelta(hours=5), tomorrow_9am + timedelta(hours=6)
        )

        day_slots = allocator.free_slots_for_day(lot.id, tomorrow_9am.date())
        day_start = tomorrow_9am.replace(hour=0)
        for spot in day_slots.spots:
            free_starts = {slot.start for slot in spot.free_slots}
            for hour in range(24):
                slot = _range(day_start + timedelta(hours=hour))
                expected = allocator.is_spot_free(lot.id, spot.spot_number, slot)
                assert (slot.start in free_starts) == expected

    def test_overnight_booking_blocks_early_hours(
        self, allocator, booking_service, lot, alice, tomorrow_9am
    ):
        midnight = tomorrow_9am.replace(hour=0)
        booking_service.create_booking(
            alice, lot.id, midnight - timedelta(hours=2), midnight + timedelta(minutes=30)
        )

        spot_one = allocator.free_slots_for_day(lot.id, tomorrow_9am.date()).spots[0]
        assert spot_one.free_slots[0].start == midnight + timedelta(hours=1)

    def test_cancelled_bookings_do_not_block(
        self, allocator, booking_service, lot, alice, tomorrow_9am
    ):
        booking = booking_service.create_booking(
            alice, lot.id, tomorrow_9am, tomorrow_9am + timedelta(hours=1)
        )
        booking_service.cancel_booking(booking.id, alice)

        spots = allocator.free_slots_for_day(lot.id, tomorrow_9am.date()).spots
        assert len(spots[0].free_slots) == 24

    def test_unknown_lot(self, allocator):
        with pytest.raises(NotFoundException):
            allocator.free_slots_for_day("missing-lot", date(2030, 6, 1))
