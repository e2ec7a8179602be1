"""Lot directory: creation rules, ownership and resizing."""

from datetime import timedelta
from decimal import Decimal

import pytest

from parkbook.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from parkbook.domain.time_range import TimeRange, utc_now
from parkbook.services.parking_lot_service import ParkingLotService
from parkbook.services.spot_allocator import SpotAllocator


@pytest.fixture
def lot_service(db):
    return ParkingLotService(db)


class TestCreateLot:
    def test_new_lot_is_fully_available(self, lot_service, company):
        lot = lot_service.create_lot(
            company, name="  Pier 39 ", location="Embarcadero", total_spots=12, hourly_rate=Decimal("4.25")
        )

        assert lot.name == "Pier 39"
        assert lot.owner_id == company.id
        assert lot.available_spots == 12
        assert lot.allocation_version == 0
        assert lot_service.get_lot(lot.id).id == lot.id
        assert [owned.id for owned in lot_service.list_owned_lots(company)] == [lot.id]

    def test_users_cannot_own_lots(self, lot_service, alice):
        with pytest.raises(ForbiddenException):
            lot_service.create_lot(alice, name="Driveway", location="Home", total_spots=1, hourly_rate=0)

    @pytest.mark.parametrize(
        "overrides, code",
        [
            ({"name": ""}, "INVALID_LOT_NAME"),
            ({"name": "x" * 101}, "INVALID_LOT_NAME"),
            ({"location": "  "}, "INVALID_LOCATION"),
            ({"total_spots": 0}, "INVALID_TOTAL_SPOTS"),
            ({"hourly_rate": Decimal("-1")}, "INVALID_HOURLY_RATE"),
        ],
    )
    def test_invalid_lots(self, lot_service, company, overrides, code):
        kwargs = dict(name="Pier 39", location="Embarcadero", total_spots=5, hourly_rate=Decimal("1"))
        kwargs.update(overrides)
        with pytest.raises(ValidationException) as exc_info:
            lot_service.create_lot(company, **kwargs)
        assert exc_info.value.code == code

    def test_unknown_lot(self, lot_service):
        with pytest.raises(NotFoundException):
            lot_service.get_lot("missing-lot")


class TestResizeLot:
    def test_shrinking_keeps_existing_bookings(
        self, db, lot_service, booking_service, make_lot, company, alice, tomorrow_9am
    ):
        lot = make_lot(total_spots=3)
        end = tomorrow_9am + timedelta(hours=1)
        bookings = [booking_service.create_booking(alice, lot.id, tomorrow_9am, end) for _ in range(3)]

        resized = lot_service.resize_lot(lot.id, company, 2)

        assert resized.total_spots == 2
        for booking in bookings:
            db.refresh(booking)
            assert booking.status == "booked"
        assert SpotAllocator(db).find_spot(lot.id, TimeRange(tomorrow_9am, end), 2) is None

    def test_counter_is_clamped(self, db, lot_service, booking_service, make_lot, company, alice):
        lot = make_lot(total_spots=3)
        now = utc_now()
        for _ in range(2):
            booking_service.create_booking(alice, lot.id, now - timedelta(hours=1), now + timedelta(hours=1))

        resized = lot_service.resize_lot(lot.id, company, 1)
        assert resized.available_spots == 0

        grown = lot_service.resize_lot(lot.id, company, 10)
        assert grown.available_spots == 8

    def test_only_the_owner_may_resize(self, lot_service, lot, other_company):
        with pytest.raises(ForbiddenException):
            lot_service.resize_lot(lot.id, other_company, 10)

    def test_invalid_size(self, lot_service, lot, company):
        with pytest.raises(ValidationException):
            lot_service.resize_lot(lot.id, company, 0)

    def test_unknown_lot(self, lot_service, company):
        with pytest.raises(NotFoundException):
            lot_service.resize_lot("missing-lot", company, 4)
