"""Request validation for booking payloads."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from parkbook.schemas.booking import BookingCreate, PaymentResponse


class TestBookingCreate:
    def test_minimal_payload(self):
        payload = BookingCreate(
            parking_lot_id="lot-1",
            start_time="2030-06-01T09:00:00Z",
            end_time="2030-06-01T10:00:00Z",
        )
        assert payload.with_payment is True
        assert payload.vehicle_details is None
        assert payload.amount is None

    def test_unknown_fields_are_rejected(self):
        with pytest.raises(ValidationError):
            BookingCreate(parking_lot_id="lot-1", spot_number=3)

    def test_vehicle_details_are_trimmed(self):
        payload = BookingCreate(
            parking_lot_id="lot-1",
            vehicle_details={"license_plate": " ab-123 ", "model": "Civic", "color": "Blue "},
        )
        vehicle = payload.vehicle_details.to_input()
        assert vehicle.license_plate == "ab-123"
        assert vehicle.color == "Blue"

    @pytest.mark.parametrize("amount", ["5.00", 5, 5.0])
    def test_amount_accepts_numbers_and_strings(self, amount):
        payload = BookingCreate(parking_lot_id="lot-1", amount=amount)
        assert payload.amount == Decimal("5")

    @pytest.mark.parametrize("amount", ["five", "1.2.3", [5]])
    def test_amount_rejects_non_numbers(self, amount):
        with pytest.raises(ValidationError):
            BookingCreate(parking_lot_id="lot-1", amount=amount)


def test_money_serializes_as_float():
    payment = PaymentResponse(reference="PAY-1", amount=Decimal("7.50"), status="pending")
    assert payment.model_dump(mode="json")["amount"] == 7.5
