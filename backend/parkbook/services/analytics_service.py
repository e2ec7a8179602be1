# backend/parkbook/services/analytics_service.py
"""
Company analytics for ParkBook.

Companies see bookings on the lots they own: paginated history, revenue from
successful payments, counts by status, a per-lot breakdown, live occupancy,
a monthly revenue series and a detailed report over a creation-date window.
Occupancy is computed from ``booked`` bookings covering the current instant,
never from the lots' advisory counters.
"""

import calendar
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
import logging
import math
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.constants import (
    COMPANY_RECENT_BOOKINGS_LIMIT,
    DEFAULT_REVENUE_CHART_MONTHS,
    MAX_REVENUE_CHART_MONTHS,
    PEAK_HOURS_LIMIT,
    TOP_CUSTOMERS_LIMIT,
)
from ..core.exceptions import ForbiddenException, ValidationException
from ..domain.booking_lifecycle import BookingStatus, PaymentStatus
from ..domain.time_range import ensure_utc, month_windows, utc_now
from ..models.parking_lot import ParkingLot
from ..principal import Actor
from ..repositories.booking_repository import BookingFilters, BookingScope
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .booking_service import BookingPage, BookingService, BookingView, FilterOptions
from .parking_lot_service import ParkingLotService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LotOccupancy:
    parking_lot_id: str
    name: str
    total_spots: int
    occupied_spots: int

    @property
    def available_spots(self) -> int:
        return max(0, self.total_spots - self.occupied_spots)


@dataclass
class LiveOccupancy:
    lots: List[LotOccupancy] = field(default_factory=list)

    @property
    def total_spots(self) -> int:
        return sum(lot.total_spots for lot in self.lots)

    @property
    def occupied_spots(self) -> int:
        return sum(lot.occupied_spots for lot in self.lots)

    @property
    def available_spots(self) -> int:
        return sum(lot.available_spots for lot in self.lots)

    @property
    def occupancy_percentage(self) -> int:
        if self.total_spots == 0:
            return 0
        return round(self.occupied_spots / self.total_spots * 100)


@dataclass(frozen=True)
class CompanyStats:
    total_parking_lots: int
    total_bookings: int
    successful_bookings: int
    total_revenue: Decimal
    bookings_by_status: Dict[str, int]
    bookings_by_parking_lot: List[Dict[str, Any]]
    recent_bookings: List[BookingView]
    occupancy: LiveOccupancy


@dataclass(frozen=True)
class MonthlyRevenue:
    year: int
    month: int
    revenue: Decimal
    bookings: int

    @property
    def label(self) -> str:
        return calendar.month_abbr[self.month]


@dataclass(frozen=True)
class PeakHour:
    hour: int
    bookings: int


@dataclass(frozen=True)
class CustomerTotals:
    booked_by_id: str
    total_bookings: int
    total_revenue: Decimal


@dataclass(frozen=True)
class DetailedReport:
    """Bookings created in ``[start_date, end_date]`` on the selected lots."""

    start_date: datetime
    end_date: datetime
    days: int
    total_revenue: Decimal
    revenue_by_payment_status: Dict[str, Decimal]
    total_bookings: int
    bookings_by_status: Dict[str, int]
    average_duration_hours: float
    peak_hours: List[PeakHour]
    top_customers: List[CustomerTotals]

    @property
    def daily_revenue(self) -> Decimal:
        return (self.total_revenue / self.days).quantize(Decimal("0.01"))

    @property
    def daily_bookings(self) -> float:
        return round(self.total_bookings / self.days, 1)


class AnalyticsService(BaseService):
    """Reporting over the bookings of a company's lots."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.lot_service = ParkingLotService(db)

    @BaseService.measure_operation("company_history")
    def company_history(
        self,
        owner: Actor,
        *,
        status: Optional[BookingStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        parking_lot_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> BookingPage:
        """Bookings on the company's lots, newest start first."""
        self._require_company(owner)
        now = utc_now()
        page, limit = BookingService.page_bounds(page, limit)

        lots = self.lot_service.list_owned_lots(owner)
        scope = BookingScope(lot_ids=[lot.id for lot in lots])
        filters = BookingService.history_filters(
            now,
            status=status.value if status else None,
            payment_status=payment_status.value if payment_status else None,
            parking_lot_id=parking_lot_id,
            start_date=start_date,
            end_date=end_date,
        )

        total = self.booking_repository.count_bookings(scope, filters)
        bookings = self.booking_repository.list_bookings(
            scope, filters, offset=(page - 1) * limit, limit=limit
        )
        return BookingPage(
            items=[BookingService.view(booking, now) for booking in bookings],
            page=page if total else 1,
            limit=limit,
            total=total,
        )

    @BaseService.measure_operation("company_stats")
    def company_stats(self, owner: Actor) -> CompanyStats:
        self._require_company(owner)
        now = utc_now()

        lots = self.lot_service.list_owned_lots(owner)
        lot_ids = [lot.id for lot in lots]
        scope = BookingScope(lot_ids=lot_ids)
        paid = BookingFilters(payment_status=PaymentStatus.SUCCESS.value)

        recent = self.booking_repository.list_bookings(
            scope, paid, limit=COMPANY_RECENT_BOOKINGS_LIMIT
        )
        return CompanyStats(
            total_parking_lots=len(lots),
            total_bookings=self.booking_repository.count_bookings(scope),
            successful_bookings=self.booking_repository.count_bookings(scope, paid),
            total_revenue=self.booking_repository.sum_successful_payments(scope),
            bookings_by_status=self.booking_repository.count_bookings_by_status(scope),
            bookings_by_parking_lot=self.booking_repository.bookings_by_lot(lot_ids),
            recent_bookings=[BookingService.view(booking, now) for booking in recent],
            occupancy=self._live_occupancy(lots, now),
        )

    @BaseService.measure_operation("revenue_by_month")
    def revenue_by_month(
        self, owner: Actor, months: int = DEFAULT_REVENUE_CHART_MONTHS
    ) -> List[MonthlyRevenue]:
        """
        Revenue and new bookings for each of the last ``months`` calendar months.

        Oldest month first; the current month is last. Revenue is attributed to
        the month a payment succeeded in, bookings to the month they were made.
        """
        self._require_company(owner)
        if months < 1 or months > MAX_REVENUE_CHART_MONTHS:
            raise ValidationException(
                f"months must be between 1 and {MAX_REVENUE_CHART_MONTHS}",
                code="INVALID_MONTHS",
            )

        windows = month_windows(utc_now(), months)
        lot_ids = [lot.id for lot in self.lot_service.list_owned_lots(owner)]
        totals = self.booking_repository.monthly_totals(lot_ids, windows)
        return [
            MonthlyRevenue(
                year=window.start.year,
                month=window.start.month,
                revenue=revenue,
                bookings=bookings,
            )
            for window, (revenue, bookings) in zip(windows, totals)
        ]

    @BaseService.measure_operation("detailed_report")
    def detailed_report(
        self,
        owner: Actor,
        start_date: Optional[datetime],
        end_date: Optional[datetime],
        parking_lot_id: Optional[str] = None,
    ) -> DetailedReport:
        """
        Revenue, volume, durations, peak start hours and top customers.

        Covers bookings created within the window on all of the company's lots,
        or on one of them when ``parking_lot_id`` is given. Daily averages
        divide by the window length in whole days, at least one.
        """
        self._require_company(owner)
        if start_date is None or end_date is None:
            raise ValidationException(
                "Please provide start_date and end_date", code="MISSING_DATE_RANGE"
            )
        start, end = ensure_utc(start_date), ensure_utc(end_date)
        if start > end:
            raise ValidationException(
                "start_date must not be after end_date", code="INVALID_DATE_WINDOW"
            )

        lot_ids = [lot.id for lot in self.lot_service.list_owned_lots(owner)]
        if parking_lot_id is not None:
            if parking_lot_id not in lot_ids:
                raise ForbiddenException(
                    "Not authorized to view this parking lot", code="NOT_LOT_OWNER"
                )
            lot_ids = [parking_lot_id]

        bookings = self.booking_repository.list_created_between(
            BookingScope(lot_ids=lot_ids), start, end
        )

        revenue_by_payment_status = {status.value: Decimal("0") for status in PaymentStatus}
        bookings_by_status = {status.value: 0 for status in BookingStatus}
        hours_booked = 0.0
        start_hours: Counter = Counter()
        customer_bookings: Counter = Counter()
        customer_revenue: Dict[str, Decimal] = {}

        for booking in bookings:
            bookings_by_status[booking.status] = bookings_by_status.get(booking.status, 0) + 1
            hours_booked += (booking.end_time - booking.start_time).total_seconds() / 3600
            start_hours[booking.start_time.hour] += 1
            customer_bookings[booking.booked_by_id] += 1
            customer_revenue.setdefault(booking.booked_by_id, Decimal("0"))

            payment = booking.payment
            if payment is None:
                continue
            revenue_by_payment_status[payment.status.value] += payment.amount
            if payment.status == PaymentStatus.SUCCESS:
                customer_revenue[booking.booked_by_id] += payment.amount

        peak_hours = sorted(start_hours.items(), key=lambda item: (-item[1], item[0]))
        top_customers = sorted(
            (
                CustomerTotals(
                    booked_by_id=booked_by_id,
                    total_bookings=count,
                    total_revenue=customer_revenue[booked_by_id],
                )
                for booked_by_id, count in customer_bookings.items()
            ),
            key=lambda totals: (-totals.total_revenue, -totals.total_bookings, totals.booked_by_id),
        )
        return DetailedReport(
            start_date=start,
            end_date=end,
            days=max(1, math.ceil((end - start).total_seconds() / 86400)),
            total_revenue=revenue_by_payment_status[PaymentStatus.SUCCESS.value],
            revenue_by_payment_status=revenue_by_payment_status,
            total_bookings=len(bookings),
            bookings_by_status=bookings_by_status,
            average_duration_hours=round(hours_booked / len(bookings), 1) if bookings else 0.0,
            peak_hours=[
                PeakHour(hour=hour, bookings=count)
                for hour, count in peak_hours[:PEAK_HOURS_LIMIT]
            ],
            top_customers=top_customers[:TOP_CUSTOMERS_LIMIT],
        )

    @BaseService.measure_operation("company_filter_options")
    def company_filter_options(self, owner: Actor) -> FilterOptions:
        """Statuses, the span of booking start dates and the company's lots."""
        self._require_company(owner)
        lots = self.lot_service.list_owned_lots(owner)
        min_date, max_date = self.booking_repository.start_time_bounds(
            BookingScope(lot_ids=[lot.id for lot in lots])
        )
        return FilterOptions(parking_lots=lots, min_date=min_date, max_date=max_date)

    def _live_occupancy(self, lots: List[ParkingLot], now: datetime) -> LiveOccupancy:
        occupied = self.booking_repository.count_active_at([lot.id for lot in lots], now)
        return LiveOccupancy(
            lots=[
                LotOccupancy(
                    parking_lot_id=lot.id,
                    name=lot.name,
                    total_spots=int(lot.total_spots),
                    occupied_spots=occupied.get(lot.id, 0),
                )
                for lot in lots
            ]
        )

    @staticmethod
    def _require_company(actor: Actor) -> None:
        if not actor.is_company:
            raise ForbiddenException(
                "Access denied. Only companies can view this data.",
                code="COMPANY_ROLE_REQUIRED",
            )
