# backend/parkbook/services/booking_service.py
"""
Booking Service for ParkBook

Handles all booking-related business logic:
- Check-and-reserve under the per-lot allocation lock
- Cancellation by the original booker
- Booking history, grouping and statistics for bookers
- Completion sweep for elapsed bookings

Allocation safety: every check-and-reserve runs in one transaction whose first
statement takes the lot's allocation lock. Two requests for the same lot are
therefore serialized, and the second one sees the first one's booking when it
scans for a free spot. Lock waits that time out, deadlocks and serialization
failures are retried a bounded number of times before surfacing as a conflict.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
import logging
import math
import random
import time
from typing import Any, Callable, Dict, List, Optional, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import USER_RECENT_BOOKINGS_LIMIT
from ..core.enums import TimeFilter
from ..core.exceptions import (
    BookingConflictException,
    ForbiddenException,
    NotFoundException,
    SpotUnavailableException,
    ValidationException,
)
from ..core.ulid_helper import generate_ulid
from ..domain.booking_lifecycle import (
    BookingStatus,
    Payment,
    PaymentStatus,
    TimeStatus,
    classify_time_status,
    effective_status,
    ensure_cancellable,
    validate_status_transition,
)
from ..domain.time_range import TimeRange, ensure_utc, utc_now
from ..models.booking import Booking
from ..models.parking_lot import ParkingLot
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..principal import Actor
from ..repositories.booking_repository import BookingFilters, BookingScope
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .pricing_service import PricingService
from .spot_allocator import DaySlots, SpotAllocator

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SQLSTATEs: deadlock_detected, serialization_failure, lock_not_available
_RETRYABLE_PGCODES = {"40P01", "40001", "55P03"}
_RETRYABLE_MESSAGES = (
    "deadlock detected",
    "database is locked",
    "could not serialize access",
    "canceling statement due to lock timeout",
)


@dataclass(frozen=True)
class VehicleInput:
    license_plate: str
    model: str
    color: str


@dataclass(frozen=True)
class BookingView:
    """A booking as read at one instant: lifecycle status plus time classification."""

    booking: Booking
    status: BookingStatus
    time_status: TimeStatus


@dataclass(frozen=True)
class BookingPage:
    items: List[BookingView]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


@dataclass
class GroupedBookings:
    upcoming: List[BookingView] = field(default_factory=list)
    ongoing: List[BookingView] = field(default_factory=list)
    past: List[BookingView] = field(default_factory=list)
    cancelled: List[BookingView] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        counts = {
            "upcoming": len(self.upcoming),
            "ongoing": len(self.ongoing),
            "past": len(self.past),
            "cancelled": len(self.cancelled),
        }
        counts["total"] = sum(counts.values())
        return counts


@dataclass(frozen=True)
class AvailabilityQuote:
    parking_lot: ParkingLot
    available: bool
    available_spots: int
    total_spots: int
    duration_hours: int
    hourly_rate: Decimal
    total_cost: Decimal


@dataclass(frozen=True)
class UserBookingStats:
    total_bookings: int
    successful_bookings: int
    upcoming_bookings: int
    total_spent: Decimal
    bookings_by_status: Dict[str, int]
    recent_bookings: List[BookingView]


@dataclass(frozen=True)
class FilterOptions:
    """Values a history screen can filter on."""

    parking_lots: List[ParkingLot]
    min_date: Optional[datetime] = None
    max_date: Optional[datetime] = None
    booking_statuses: List[str] = field(default_factory=lambda: [s.value for s in BookingStatus])
    payment_statuses: List[str] = field(default_factory=lambda: [s.value for s in PaymentStatus])


class BookingService(BaseService):
    """Service layer for booking operations."""

    def __init__(self, db: Session, allocator: Optional[SpotAllocator] = None):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.parking_lot_repository = RepositoryFactory.create_parking_lot_repository(db)
        self.vehicle_details_repository = RepositoryFactory.create_vehicle_details_repository(db)
        self.allocator = allocator or SpotAllocator(db)

    # Allocation

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self,
        actor: Actor,
        parking_lot_id: str,
        start_time: Optional[datetime],
        end_time: Optional[datetime],
        vehicle: Optional[VehicleInput] = None,
        amount: Optional[Decimal] = None,
        with_payment: bool = True,
    ) -> Booking:
        """
        Reserve the lowest free spot of a lot for ``[start_time, end_time)``.

        Args:
            actor: The booker
            parking_lot_id: Lot to book in
            start_time: Start of the range (inclusive)
            end_time: End of the range (exclusive)
            vehicle: Optional vehicle details, stored with the booking
            amount: Client-side quote; must match the server price when given
            with_payment: Attach a pending payment with a fresh reference

        Returns:
            The committed booking

        Raises:
            ValidationException: Missing or inverted range, amount mismatch
            NotFoundException: Unknown lot
            SpotUnavailableException: Every spot overlaps the range
            BookingConflictException: Allocation lock could not be obtained
        """
        time_range = TimeRange.from_optional(start_time, end_time)
        self.log_operation(
            "create_booking",
            actor_id=actor.id,
            parking_lot_id=parking_lot_id,
            time_range=str(time_range),
        )

        lot = self.allocator.get_lot_or_404(parking_lot_id)
        price = PricingService.quote(time_range, lot.hourly_rate)
        if amount is not None and Decimal(str(amount)) != price:
            raise ValidationException(
                "Amount does not match the price for this booking",
                code="AMOUNT_MISMATCH",
                details={"expected": str(price), "received": str(amount)},
            )

        lot_id = lot.id
        try:
            booking = self._with_allocation_retries(
                "create_booking",
                lambda: self._reserve_spot(
                    actor, lot_id, time_range, vehicle, price if with_payment else None
                ),
                details={"parking_lot_id": lot_id, "time_range": str(time_range)},
            )
        except SpotUnavailableException:
            prometheus_metrics.record_spot_allocation("unavailable")
            raise
        except BookingConflictException:
            prometheus_metrics.record_spot_allocation("conflict")
            raise

        prometheus_metrics.record_spot_allocation("allocated")
        self.logger.info(
            "Booked spot %s in lot %s for %s (booking %s)",
            booking.spot_number,
            lot_id,
            time_range,
            booking.id,
        )
        return booking

    def _reserve_spot(
        self,
        actor: Actor,
        parking_lot_id: str,
        time_range: TimeRange,
        vehicle: Optional[VehicleInput],
        price: Optional[Decimal],
    ) -> Booking:
        with self.booking_repository.transaction():
            lot = self.parking_lot_repository.acquire_allocation_lock(parking_lot_id)
            if lot is None:
                raise NotFoundException("Parking lot not found", code="PARKING_LOT_NOT_FOUND")

            spot_number = self.allocator.find_spot(lot.id, time_range, int(lot.total_spots))
            if spot_number is None:
                raise SpotUnavailableException(
                    lot.id, time_range.start.isoformat(), time_range.end.isoformat()
                )

            vehicle_details_id = None
            if vehicle is not None:
                vehicle_details = self.vehicle_details_repository.create_for_owner(
                    actor.id,
                    license_plate=vehicle.license_plate,
                    model=vehicle.model,
                    color=vehicle.color,
                )
                vehicle_details_id = vehicle_details.id

            booking = self.booking_repository.create(
                parking_lot_id=lot.id,
                spot_number=spot_number,
                start_time=time_range.start,
                end_time=time_range.end,
                booked_by_id=actor.id,
                vehicle_details_id=vehicle_details_id,
                status=BookingStatus.BOOKED.value,
            )
            if price is not None:
                booking.payment = Payment(reference=self._new_payment_reference(), amount=price)
                self.booking_repository.flush()

            self._refresh_available_spots(lot, utc_now())
        return booking

    def _with_allocation_retries(
        self, operation: str, work: Callable[[], T], details: Optional[Dict[str, Any]] = None
    ) -> T:
        """
        Run ``work`` (one full transaction) until it commits or the attempt budget runs out.

        Only lock contention and constraint races are retried; domain errors
        raised inside ``work`` propagate immediately.
        """
        max_attempts = settings.allocation_max_attempts
        last_error: Optional[Exception] = None
        for attempt in range(1, max_attempts + 1):
            try:
                return work()
            except IntegrityError as exc:
                last_error = exc
            except OperationalError as exc:
                if not self._is_lock_contention_error(exc):
                    raise
                last_error = exc

            self.logger.warning(
                "%s attempt %s/%s lost the allocation race: %s",
                operation,
                attempt,
                max_attempts,
                last_error.__class__.__name__,
            )
            if attempt < max_attempts:
                prometheus_metrics.record_allocation_retry()
                self._backoff(attempt)

        raise BookingConflictException(
            details={**(details or {}), "attempts": max_attempts}
        ) from last_error

    @staticmethod
    def _is_lock_contention_error(exc: OperationalError) -> bool:
        orig = getattr(exc, "orig", None)
        pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        if pgcode in _RETRYABLE_PGCODES:
            return True
        message = str(exc).lower()
        return any(fragment in message for fragment in _RETRYABLE_MESSAGES)

    @staticmethod
    def _backoff(attempt: int) -> None:
        base = settings.allocation_retry_base_delay
        if base <= 0:
            return
        time.sleep(base * (2 ** (attempt - 1)) * random.uniform(1.0, 1.5))

    @staticmethod
    def _new_payment_reference() -> str:
        return f"{settings.payment_reference_prefix}-{generate_ulid()}"

    def _refresh_available_spots(self, lot: ParkingLot, now: datetime) -> None:
        occupied = self.booking_repository.count_active_at([lot.id], now).get(lot.id, 0)
        self.parking_lot_repository.set_available_spots(lot, int(lot.total_spots) - occupied)

    @BaseService.measure_operation("check_availability")
    def check_availability(
        self,
        parking_lot_id: str,
        start_time: Optional[datetime],
        end_time: Optional[datetime],
    ) -> AvailabilityQuote:
        """Free spot count and price for a prospective booking."""
        time_range = TimeRange.from_optional(start_time, end_time)
        if time_range.start <= utc_now():
            raise ValidationException(
                "Start time cannot be in the past", code="START_TIME_IN_PAST"
            )

        lot = self.allocator.get_lot_or_404(parking_lot_id)
        available_spots = self.allocator.count_available(lot.id, time_range, int(lot.total_spots))
        hourly_rate = Decimal(str(lot.hourly_rate))
        return AvailabilityQuote(
            parking_lot=lot,
            available=available_spots > 0,
            available_spots=available_spots,
            total_spots=int(lot.total_spots),
            duration_hours=time_range.billable_hours,
            hourly_rate=hourly_rate,
            total_cost=PricingService.quote(time_range, hourly_rate),
        )

    def available_slots(self, parking_lot_id: str, day: Optional[date]) -> DaySlots:
        """Free one-hour slots of each spot for a UTC day."""
        if day is None:
            raise ValidationException("Please provide a date", code="MISSING_DATE")
        return self.allocator.free_slots_for_day(parking_lot_id, day)

    # Lifecycle

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(self, booking_id: str, actor: Actor) -> Booking:
        """
        Cancel a booking. Only the booker may cancel, and only before it starts.

        Runs under the lot's allocation lock so the freed spot is never
        observed half-released by a concurrent allocation.
        """
        self.log_operation("cancel_booking", booking_id=booking_id, actor_id=actor.id)

        booking = self._get_booking_or_404(booking_id)
        now = utc_now()
        ensure_cancellable(
            status=booking.booking_status,
            booked_by_id=booking.booked_by_id,
            actor_id=actor.id,
            start_time=booking.start_time,
            now=now,
        )

        lot_id = booking.parking_lot_id
        cancelled = self._with_allocation_retries(
            "cancel_booking",
            lambda: self._cancel_locked(lot_id, booking_id, actor),
            details={"booking_id": booking_id},
        )
        self.logger.info(
            "Cancelled booking %s (lot %s spot %s)",
            cancelled.id,
            cancelled.parking_lot_id,
            cancelled.spot_number,
        )
        return cancelled

    def _cancel_locked(self, parking_lot_id: str, booking_id: str, actor: Actor) -> Booking:
        with self.booking_repository.transaction():
            lot = self.parking_lot_repository.acquire_allocation_lock(parking_lot_id)
            booking = self.booking_repository.reload(booking_id)
            if lot is None or booking is None:
                raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")

            now = utc_now()
            ensure_cancellable(
                status=booking.booking_status,
                booked_by_id=booking.booked_by_id,
                actor_id=actor.id,
                start_time=booking.start_time,
                now=now,
            )
            booking.mark_cancelled(now)
            self.booking_repository.flush()
            self._refresh_available_spots(lot, now)
        return booking

    @BaseService.measure_operation("complete_elapsed_bookings")
    def complete_elapsed_bookings(self, now: Optional[datetime] = None) -> int:
        """Persist ``booked -> completed`` for bookings whose end time has passed."""
        moment = now or utc_now()
        with self.transaction():
            elapsed = self.booking_repository.list_elapsed_booked(moment)
            for booking in elapsed:
                validate_status_transition(booking.booking_status, BookingStatus.COMPLETED)
                booking.mark_completed(moment)
            self.db.flush()

        if elapsed:
            self.logger.info("Completed %s elapsed bookings", len(elapsed))
        return len(elapsed)

    # Reads

    @BaseService.measure_operation("get_booking")
    def get_booking(self, booking_id: str, actor: Actor) -> BookingView:
        """A single booking, visible to its booker and to the lot owner."""
        booking = self._get_booking_or_404(booking_id)
        if not self.can_view(booking, actor):
            raise ForbiddenException(
                "Not authorized to view this booking", code="NOT_BOOKING_PARTICIPANT"
            )
        return self.view(booking, utc_now())

    @BaseService.measure_operation("list_user_bookings")
    def list_user_bookings(
        self,
        actor: Actor,
        *,
        status: Optional[BookingStatus] = None,
        include_cancelled: bool = False,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        time_filter: Optional[TimeFilter] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> BookingPage:
        """
        The actor's bookings, newest start first.

        Cancelled bookings are hidden unless ``include_cancelled`` is set or
        ``status`` asks for them explicitly. The date window applies only when
        both ends are given.
        """
        now = utc_now()
        page, limit = self.page_bounds(page, limit)
        filters = self.history_filters(
            now,
            status=status.value if status else None,
            exclude_cancelled=not include_cancelled,
            start_date=start_date,
            end_date=end_date,
            time_filter=time_filter,
        )
        scope = BookingScope(booked_by_id=actor.id)

        total = self.booking_repository.count_bookings(scope, filters)
        bookings = self.booking_repository.list_bookings(
            scope, filters, offset=(page - 1) * limit, limit=limit
        )
        return BookingPage(
            items=[self.view(booking, now) for booking in bookings],
            page=page,
            limit=limit,
            total=total,
        )

    @BaseService.measure_operation("group_user_bookings")
    def group_user_bookings(self, actor: Actor, include_cancelled: bool = False) -> GroupedBookings:
        """All of the actor's bookings split by time status at one instant."""
        now = utc_now()
        filters = BookingFilters(exclude_cancelled=not include_cancelled)
        bookings = self.booking_repository.list_bookings(
            BookingScope(booked_by_id=actor.id), filters
        )

        grouped = GroupedBookings()
        buckets = {
            TimeStatus.UPCOMING: grouped.upcoming,
            TimeStatus.ONGOING: grouped.ongoing,
            TimeStatus.PAST: grouped.past,
            TimeStatus.CANCELLED: grouped.cancelled,
        }
        for booking in bookings:
            view = self.view(booking, now)
            buckets[view.time_status].append(view)
        return grouped

    @BaseService.measure_operation("get_user_stats")
    def get_user_stats(self, actor: Actor) -> UserBookingStats:
        now = utc_now()
        scope = BookingScope(booked_by_id=actor.id)
        paid = BookingFilters(payment_status=PaymentStatus.SUCCESS.value)

        recent = self.booking_repository.list_bookings(
            scope, paid, limit=USER_RECENT_BOOKINGS_LIMIT
        )
        return UserBookingStats(
            total_bookings=self.booking_repository.count_bookings(scope),
            successful_bookings=self.booking_repository.count_bookings(scope, paid),
            upcoming_bookings=self.booking_repository.count_bookings(
                scope,
                BookingFilters(payment_status=PaymentStatus.SUCCESS.value, starting_after=now),
            ),
            total_spent=self.booking_repository.sum_successful_payments(scope),
            bookings_by_status=self.booking_repository.count_bookings_by_status(scope),
            recent_bookings=[self.view(booking, now) for booking in recent],
        )

    @BaseService.measure_operation("user_filter_options")
    def user_filter_options(self, actor: Actor) -> FilterOptions:
        """Statuses, the span of start dates and the lots the actor has booked."""
        min_date, max_date = self.booking_repository.start_time_bounds(
            BookingScope(booked_by_id=actor.id)
        )
        return FilterOptions(
            parking_lots=self.parking_lot_repository.list_booked_by(actor.id),
            min_date=min_date,
            max_date=max_date,
        )

    # Shared helpers

    def _get_booking_or_404(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_booking_with_details(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        return booking

    @staticmethod
    def can_view(booking: Booking, actor: Actor) -> bool:
        if booking.is_booker(actor.id):
            return True
        lot = booking.parking_lot
        return lot is not None and lot.owner_id == actor.id

    @staticmethod
    def view(booking: Booking, now: datetime) -> BookingView:
        status = effective_status(booking.booking_status, booking.end_time, now)
        return BookingView(
            booking=booking,
            status=status,
            time_status=classify_time_status(now, booking.start_time, booking.end_time, status),
        )

    @staticmethod
    def page_bounds(page: int, limit: Optional[int]) -> tuple[int, int]:
        if page < 1:
            raise ValidationException("page must be at least 1", code="INVALID_PAGE")
        size = limit if limit is not None else settings.default_page_size
        if size < 1 or size > settings.max_page_size:
            raise ValidationException(
                f"limit must be between 1 and {settings.max_page_size}", code="INVALID_LIMIT"
            )
        return page, size

    @staticmethod
    def history_filters(
        now: datetime,
        *,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        exclude_cancelled: bool = False,
        parking_lot_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        time_filter: Optional[TimeFilter] = None,
    ) -> BookingFilters:
        start_from = start_to = None
        if start_date is not None and end_date is not None:
            start_from, start_to = ensure_utc(start_date), ensure_utc(end_date)
            if start_from > start_to:
                raise ValidationException(
                    "start_date must not be after end_date", code="INVALID_DATE_WINDOW"
                )

        return BookingFilters(
            status=status,
            payment_status=payment_status,
            exclude_cancelled=exclude_cancelled,
            parking_lot_id=parking_lot_id,
            start_from=start_from,
            start_to=start_to,
            ended_before=now if time_filter == TimeFilter.PAST else None,
            starting_after=now if time_filter == TimeFilter.UPCOMING else None,
        )
