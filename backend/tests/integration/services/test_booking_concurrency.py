"""
Concurrent check-and-reserve against one lot.

Each worker gets its own session (and so its own connection) on the same
file-backed database; the allocation lock must keep every ``booked`` booking
on a spot disjoint from the others.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
import threading

from parkbook.core.config import settings
from parkbook.core.exceptions import BookingConflictException, SpotUnavailableException
from parkbook.models.booking import Booking
from parkbook.principal import Actor
from parkbook.services.booking_service import BookingService

WORKERS = 8


def _run_concurrently(session_factory, lot_id, requests):
    barrier = threading.Barrier(len(requests))

    def attempt(index_and_range):
        index, (start, end) = index_and_range
        session = session_factory()
        try:
            barrier.wait()
            booking = BookingService(session).create_booking(
                Actor(id=f"driver_{index}"), lot_id, start, end
            )
            return ("booked", booking.spot_number)
        except (SpotUnavailableException, BookingConflictException) as exc:
            return ("rejected", exc.code)
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=len(requests)) as pool:
        return list(pool.map(attempt, enumerate(requests)))


def _booked_rows(db, lot_id):
    db.expire_all()
    return db.query(Booking).filter(Booking.parking_lot_id == lot_id, Booking.status == "booked").all()


class TestConcurrentAllocation:
    def test_no_double_booking_for_identical_ranges(
        self, monkeypatch, db, session_factory, make_lot, tomorrow_9am
    ):
        monkeypatch.setattr(settings, "allocation_max_attempts", 10)
        lot = make_lot(total_spots=2)
        end = tomorrow_9am + timedelta(hours=1)

        results = _run_concurrently(session_factory, lot.id, [(tomorrow_9am, end)] * WORKERS)

        booked = sorted(spot for outcome, spot in results if outcome == "booked")
        rejected = [code for outcome, code in results if outcome == "rejected"]
        assert booked == [1, 2]
        assert set(rejected) <= {"NO_SPOT_AVAILABLE", "BOOKING_CONFLICT"}
        assert len(rejected) == WORKERS - 2

        rows = _booked_rows(db, lot.id)
        assert sorted(row.spot_number for row in rows) == [1, 2]

    def test_overlapping_ranges_stay_disjoint_per_spot(
        self, monkeypatch, db, session_factory, make_lot, tomorrow_9am
    ):
        monkeypatch.setattr(settings, "allocation_max_attempts", 10)
        lot = make_lot(total_spots=3)
        requests = [
            (tomorrow_9am + timedelta(minutes=20 * i), tomorrow_9am + timedelta(minutes=20 * i + 90))
            for i in range(WORKERS)
        ]

        _run_concurrently(session_factory, lot.id, requests)

        by_spot = {}
        for row in _booked_rows(db, lot.id):
            by_spot.setdefault(row.spot_number, []).append(row.time_range)

        assert by_spot
        for spot_number, ranges in by_spot.items():
            assert 1 <= spot_number <= 3
            for i, first in enumerate(ranges):
                for second in ranges[i + 1 :]:
                    assert not first.overlaps(second), f"spot {spot_number}: {first} / {second}"

    def test_sequential_arrivals_get_lowest_spot_in_order(self, session_factory, make_lot, tomorrow_9am):
        lot = make_lot(total_spots=2)
        hour = timedelta(hours=1)
        half = timedelta(minutes=30)

        first = _run_concurrently(session_factory, lot.id, [(tomorrow_9am, tomorrow_9am + hour)])
        second = _run_concurrently(
            session_factory, lot.id, [(tomorrow_9am + half, tomorrow_9am + half + hour)]
        )

        assert first == [("booked", 1)]
        assert second == [("booked", 2)]
