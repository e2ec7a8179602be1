# backend/parkbook/schemas/booking.py
"""
Booking schemas for the ParkBook API.

Request models are strict (unknown fields are rejected). Responses are built
from ``BookingView`` so every row carries the lifecycle status and time
classification computed at a single instant.
"""

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import Field

from ..services.booking_service import (
    AvailabilityQuote,
    BookingPage,
    BookingView,
    FilterOptions,
    GroupedBookings,
    UserBookingStats,
    VehicleInput,
)
from ..services.spot_allocator import DaySlots
from ._strict_base import StrictRequestModel
from .base import Money, StandardizedModel


class VehicleDetailsIn(StrictRequestModel):
    license_plate: str = Field(..., min_length=1, max_length=20)
    model: str = Field(..., min_length=1, max_length=100)
    color: str = Field(..., min_length=1, max_length=50)

    def to_input(self) -> VehicleInput:
        return VehicleInput(license_plate=self.license_plate, model=self.model, color=self.color)


class BookingCreate(StrictRequestModel):
    """
    Reserve a spot in a lot for ``[start_time, end_time)``.

    The spot number is assigned by the server. ``amount`` is optional; when
    given it must equal the server's price for the range.
    """

    parking_lot_id: str = Field(..., min_length=1, description="Lot to book in")
    start_time: Optional[datetime] = Field(None, description="Start of the booking (inclusive)")
    end_time: Optional[datetime] = Field(None, description="End of the booking (exclusive)")
    vehicle_details: Optional[VehicleDetailsIn] = None
    amount: Optional[Money] = Field(None, description="Expected price, checked against the quote")
    with_payment: bool = Field(True, description="Attach a pending payment to the booking")


class ParkingLotSummary(StandardizedModel):
    id: str
    name: str
    location: str


class VehicleDetailsResponse(StandardizedModel):
    license_plate: str
    model: str
    color: str


class PaymentResponse(StandardizedModel):
    reference: str
    amount: Money
    status: str
    paid_at: Optional[datetime] = None


class BookingResponse(StandardizedModel):
    id: str
    parking_lot_id: str
    parking_lot: Optional[ParkingLotSummary] = None
    spot_number: int
    start_time: datetime
    end_time: datetime
    booked_by_id: str
    status: str
    time_status: str
    vehicle_details: Optional[VehicleDetailsResponse] = None
    payment: Optional[PaymentResponse] = None
    created_at: datetime
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_view(cls, view: BookingView) -> "BookingResponse":
        booking = view.booking
        payment = booking.payment
        return cls(
            id=booking.id,
            parking_lot_id=booking.parking_lot_id,
            parking_lot=(
                ParkingLotSummary.model_validate(booking.parking_lot)
                if booking.parking_lot is not None
                else None
            ),
            spot_number=booking.spot_number,
            start_time=booking.start_time,
            end_time=booking.end_time,
            booked_by_id=booking.booked_by_id,
            status=view.status.value,
            time_status=view.time_status.value,
            vehicle_details=(
                VehicleDetailsResponse.model_validate(booking.vehicle_details)
                if booking.vehicle_details is not None
                else None
            ),
            payment=(
                PaymentResponse(
                    reference=payment.reference,
                    amount=payment.amount,
                    status=payment.status.value,
                    paid_at=payment.paid_at,
                )
                if payment is not None
                else None
            ),
            created_at=booking.created_at,
            cancelled_at=booking.cancelled_at,
            completed_at=booking.completed_at,
        )


class BookingCreateResponse(StandardizedModel):
    booking_id: str
    spot_number: int
    payment_reference: Optional[str] = None
    booking: BookingResponse


class AvailabilityResponse(StandardizedModel):
    parking_lot: ParkingLotSummary
    available: bool
    available_spots: int
    total_spots: int
    duration_hours: int
    hourly_rate: Money
    total_cost: Money

    @classmethod
    def from_quote(cls, quote: AvailabilityQuote) -> "AvailabilityResponse":
        return cls(
            parking_lot=ParkingLotSummary.model_validate(quote.parking_lot),
            available=quote.available,
            available_spots=quote.available_spots,
            total_spots=quote.total_spots,
            duration_hours=quote.duration_hours,
            hourly_rate=quote.hourly_rate,
            total_cost=quote.total_cost,
        )


class PaginationMeta(StandardizedModel):
    page: int
    limit: int
    total: int
    pages: int


class BookingListResponse(StandardizedModel):
    data: List[BookingResponse]
    pagination: PaginationMeta

    @classmethod
    def from_page(cls, page: BookingPage) -> "BookingListResponse":
        return cls(
            data=[BookingResponse.from_view(view) for view in page.items],
            pagination=PaginationMeta(
                page=page.page, limit=page.limit, total=page.total, pages=page.pages
            ),
        )


class GroupedBookingsData(StandardizedModel):
    upcoming: List[BookingResponse] = Field(default_factory=list)
    ongoing: List[BookingResponse] = Field(default_factory=list)
    past: List[BookingResponse] = Field(default_factory=list)
    cancelled: List[BookingResponse] = Field(default_factory=list)


class GroupedBookingsResponse(StandardizedModel):
    data: GroupedBookingsData
    counts: Dict[str, int]

    @classmethod
    def from_groups(cls, grouped: GroupedBookings) -> "GroupedBookingsResponse":
        return cls(
            data=GroupedBookingsData(
                upcoming=[BookingResponse.from_view(v) for v in grouped.upcoming],
                ongoing=[BookingResponse.from_view(v) for v in grouped.ongoing],
                past=[BookingResponse.from_view(v) for v in grouped.past],
                cancelled=[BookingResponse.from_view(v) for v in grouped.cancelled],
            ),
            counts=grouped.counts(),
        )


class UserBookingStatsResponse(StandardizedModel):
    total_bookings: int
    successful_bookings: int
    upcoming_bookings: int
    total_spent: Money
    bookings_by_status: Dict[str, int]
    recent_bookings: List[BookingResponse]

    @classmethod
    def from_stats(cls, stats: UserBookingStats) -> "UserBookingStatsResponse":
        return cls(
            total_bookings=stats.total_bookings,
            successful_bookings=stats.successful_bookings,
            upcoming_bookings=stats.upcoming_bookings,
            total_spent=stats.total_spent,
            bookings_by_status=stats.bookings_by_status,
            recent_bookings=[BookingResponse.from_view(v) for v in stats.recent_bookings],
        )


class SlotResponse(StandardizedModel):
    start_time: datetime
    end_time: datetime


class SpotSlotsResponse(StandardizedModel):
    spot_number: int
    available_slots: List[SlotResponse]


class AvailableSlotsResponse(StandardizedModel):
    parking_lot: ParkingLotSummary
    day: date
    total_spots: int
    spots: List[SpotSlotsResponse]

    @classmethod
    def from_day_slots(cls, day_slots: DaySlots) -> "AvailableSlotsResponse":
        return cls(
            parking_lot=ParkingLotSummary.model_validate(day_slots.lot),
            day=day_slots.day,
            total_spots=len(day_slots.spots),
            spots=[
                SpotSlotsResponse(
                    spot_number=spot.spot_number,
                    available_slots=[
                        SlotResponse(start_time=slot.start, end_time=slot.end)
                        for slot in spot.free_slots
                    ],
                )
                for spot in day_slots.spots
            ],
        )


class DateRange(StandardizedModel):
    min_date: Optional[datetime] = None
    max_date: Optional[datetime] = None


class FilterOptionsResponse(StandardizedModel):
    booking_statuses: List[str]
    payment_statuses: List[str]
    date_range: DateRange
    parking_lots: List[ParkingLotSummary]

    @classmethod
    def from_options(cls, options: FilterOptions) -> "FilterOptionsResponse":
        return cls(
            booking_statuses=options.booking_statuses,
            payment_statuses=options.payment_statuses,
            date_range=DateRange(min_date=options.min_date, max_date=options.max_date),
            parking_lots=[ParkingLotSummary.model_validate(lot) for lot in options.parking_lots],
        )
