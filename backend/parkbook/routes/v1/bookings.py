# backend/parkbook/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    POST / - Reserve the lowest free spot for a time range
    GET /availability - Free spot count and price for a time range
    GET /slots - Free one-hour slots of each spot for a day
    GET /filters - Filter values for the caller's history
    GET /history - Caller's bookings with filters and pagination
    GET /history/grouped - Caller's bookings grouped by time status
    GET /stats - Caller's booking statistics
    GET /{booking_id} - Booking details (booker or lot owner)
    PUT /{booking_id}/cancel - Cancel a booking before it starts
"""

import asyncio
from datetime import date, datetime
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...api.dependencies import get_booking_service, get_current_actor
from ...core.config import settings
from ...core.enums import TimeFilter
from ...core.exceptions import DomainException
from ...domain.booking_lifecycle import BookingStatus
from ...domain.time_range import utc_now
from ...principal import Actor
from ...schemas.booking import (
    AvailabilityResponse,
    AvailableSlotsResponse,
    BookingCreate,
    BookingCreateResponse,
    BookingListResponse,
    BookingResponse,
    FilterOptionsResponse,
    GroupedBookingsResponse,
    UserBookingStatsResponse,
)
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.post("", response_model=BookingCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    current_actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingCreateResponse:
    """
    Reserve a spot.

    The lowest-numbered spot free for the whole range is assigned.
    400 on an invalid range, 404 on an unknown lot, 409 when no spot is free.
    """
    try:
        booking = await asyncio.to_thread(
            booking_service.create_booking,
            current_actor,
            booking_data.parking_lot_id,
            booking_data.start_time,
            booking_data.end_time,
            vehicle=booking_data.vehicle_details.to_input() if booking_data.vehicle_details else None,
            amount=booking_data.amount,
            with_payment=booking_data.with_payment,
        )
        view = BookingService.view(booking, utc_now())
        return BookingCreateResponse(
            booking_id=booking.id,
            spot_number=booking.spot_number,
            payment_reference=booking.payment_reference,
            booking=BookingResponse.from_view(view),
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/availability", response_model=AvailabilityResponse)
async def check_availability(
    lot_id: str = Query(..., min_length=1),
    start_time: Optional[datetime] = Query(None),
    end_time: Optional[datetime] = Query(None),
    booking_service: BookingService = Depends(get_booking_service),
) -> AvailabilityResponse:
    """Check how many spots are free for a prospective booking, and its price."""
    try:
        quote = await asyncio.to_thread(
            booking_service.check_availability, lot_id, start_time, end_time
        )
        return AvailabilityResponse.from_quote(quote)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/slots", response_model=AvailableSlotsResponse)
async def get_available_slots(
    lot_id: str = Query(..., min_length=1),
    day: Optional[date] = Query(None, alias="date", description="UTC calendar day (YYYY-MM-DD)"),
    booking_service: BookingService = Depends(get_booking_service),
) -> AvailableSlotsResponse:
    """Free one-hour slots of every spot in the lot over one UTC day."""
    try:
        day_slots = await asyncio.to_thread(booking_service.available_slots, lot_id, day)
        return AvailableSlotsResponse.from_day_slots(day_slots)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/filters", response_model=FilterOptionsResponse)
async def get_booking_filter_options(
    current_actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> FilterOptionsResponse:
    try:
        options = await asyncio.to_thread(booking_service.user_filter_options, current_actor)
        return FilterOptionsResponse.from_options(options)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/history", response_model=BookingListResponse)
async def get_booking_history(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    include_cancelled: bool = Query(False),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    time_filter: Optional[TimeFilter] = Query(None),
    current_actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingListResponse:
    """Caller's bookings, newest first. Cancelled ones are hidden unless requested."""
    try:
        result = await asyncio.to_thread(
            booking_service.list_user_bookings,
            current_actor,
            status=status_filter,
            include_cancelled=include_cancelled,
            start_date=start_date,
            end_date=end_date,
            time_filter=time_filter,
            page=page,
            limit=limit,
        )
        return BookingListResponse.from_page(result)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/history/grouped", response_model=GroupedBookingsResponse)
async def get_grouped_booking_history(
    include_cancelled: bool = Query(False),
    current_actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> GroupedBookingsResponse:
    try:
        grouped = await asyncio.to_thread(
            booking_service.group_user_bookings, current_actor, include_cancelled
        )
        return GroupedBookingsResponse.from_groups(grouped)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/stats", response_model=UserBookingStatsResponse)
async def get_booking_stats(
    current_actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> UserBookingStatsResponse:
    try:
        stats = await asyncio.to_thread(booking_service.get_user_stats, current_actor)
        return UserBookingStatsResponse.from_stats(stats)
    except DomainException as e:
        handle_domain_exception(e)


# ============================================================================
# SECTION 2: Routes with path parameters
# ============================================================================


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    current_actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        view = await asyncio.to_thread(booking_service.get_booking, booking_id, current_actor)
        return BookingResponse.from_view(view)
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    current_actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Cancel a booking. Only the booker may cancel, and only before the start time."""
    try:
        booking = await asyncio.to_thread(
            booking_service.cancel_booking, booking_id, current_actor
        )
        return BookingResponse.from_view(BookingService.view(booking, utc_now()))
    except DomainException as e:
        handle_domain_exception(e)
