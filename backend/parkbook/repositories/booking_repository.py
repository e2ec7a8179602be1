# backend/parkbook/repositories/booking_repository.py
"""
Booking Repository for ParkBook

Data access for bookings:
- Per-spot overlap checks used by the spot allocator
- Payment reference lookups for the webhook reconciler
- Filtered, paginated history for bookers and lot owners
- Aggregates for user and company statistics

Only ``booked`` bookings take part in overlap checks; cancelled and completed
ones never block a spot.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, cast

from sqlalchemy import and_, case, exists, func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.exceptions import RepositoryException
from ..domain.booking_lifecycle import BookingStatus, Payment, PaymentStatus
from ..domain.time_range import TimeRange, utc_now
from ..models.booking import Booking
from ..models.parking_lot import ParkingLot
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingScope:
    """Whose bookings a query covers: one booker, a set of lots, or both."""

    booked_by_id: Optional[str] = None
    lot_ids: Optional[Sequence[str]] = None

    @property
    def is_empty(self) -> bool:
        return self.lot_ids is not None and len(self.lot_ids) == 0


@dataclass(frozen=True)
class BookingFilters:
    """Optional history filters. All bounds are UTC instants."""

    status: Optional[str] = None
    payment_status: Optional[str] = None
    exclude_cancelled: bool = False
    parking_lot_id: Optional[str] = None
    start_from: Optional[datetime] = None
    start_to: Optional[datetime] = None
    ended_before: Optional[datetime] = None
    starting_after: Optional[datetime] = None


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)

    # Allocation queries

    def has_overlapping_booking(
        self,
        parking_lot_id: str,
        spot_number: int,
        start_time: datetime,
        end_time: datetime,
    ) -> bool:
        """
        Check whether an active booking on ``(lot, spot)`` overlaps ``[start_time, end_time)``.

        Half-open: a booking ending exactly at ``start_time`` does not conflict.
        """
        try:
            conditions = [
                Booking.parking_lot_id == parking_lot_id,
                Booking.spot_number == spot_number,
                Booking.status == BookingStatus.BOOKED.value,
                # Time overlap check
                Booking.start_time < end_time,
                Booking.end_time > start_time,
            ]
            return bool(self.db.query(exists().where(and_(*conditions))).scalar())

        except SQLAlchemyError as e:
            self.logger.error(f"Error checking spot overlap: {str(e)}")
            raise RepositoryException(f"Failed to check spot overlap: {str(e)}") from e

    def list_booked_overlapping(
        self, parking_lot_id: str, start_time: datetime, end_time: datetime
    ) -> List[Booking]:
        """Active bookings on any spot of the lot that overlap ``[start_time, end_time)``."""
        query = (
            self.db.query(Booking)
            .filter(
                Booking.parking_lot_id == parking_lot_id,
                Booking.status == BookingStatus.BOOKED.value,
                Booking.start_time < end_time,
                Booking.end_time > start_time,
            )
            .order_by(Booking.spot_number, Booking.start_time)
        )
        return self._execute_query(query)

    def find_by_payment_reference(self, reference: str) -> Optional[Booking]:
        """Booking carrying the given payment reference, with lot and vehicle loaded."""
        try:
            return cast(
                Optional[Booking],
                self._with_details(self.db.query(Booking))
                .filter(Booking.payment_reference == reference)
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding booking by reference: {str(e)}")
            raise RepositoryException(f"Failed to find booking: {str(e)}") from e

    def get_booking_with_details(self, booking_id: str) -> Optional[Booking]:
        try:
            return cast(
                Optional[Booking],
                self._with_details(self.db.query(Booking)).filter(Booking.id == booking_id).first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to get booking: {str(e)}") from e

    def reload(self, booking_id: str) -> Optional[Booking]:
        """Re-read a booking from the database, discarding in-session state."""
        try:
            return cast(
                Optional[Booking],
                self.db.query(Booking).populate_existing().filter(Booking.id == booking_id).first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error reloading booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to reload booking: {str(e)}") from e

    def compare_and_set_payment(
        self, booking_id: str, expected_status: str, payment: Payment
    ) -> bool:
        """
        Write ``payment`` only if the stored payment status is still ``expected_status``.

        Returns False when a concurrent writer got there first.
        """
        try:
            result = self.db.execute(
                update(Booking)
                .where(Booking.id == booking_id, Booking.payment_status == expected_status)
                .values(
                    payment_status=payment.status.value,
                    payment_paid_at=payment.paid_at,
                    updated_at=utc_now(),
                )
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating payment for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to update payment: {str(e)}") from e
        return result.rowcount == 1

    # History

    def list_bookings(
        self,
        scope: BookingScope,
        filters: Optional[BookingFilters] = None,
        *,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Booking]:
        """Bookings in scope, newest start first."""
        if scope.is_empty:
            return []
        query = self._with_details(self._filtered(scope, filters)).order_by(
            Booking.start_time.desc(), Booking.id.desc()
        )
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return self._execute_query(query)

    def count_bookings(self, scope: BookingScope, filters: Optional[BookingFilters] = None) -> int:
        if scope.is_empty:
            return 0
        query = self._filtered(scope, filters).with_entities(func.count(Booking.id))
        return int(self._execute_scalar(query) or 0)

    # Aggregates

    def count_bookings_by_status(self, scope: BookingScope) -> Dict[str, int]:
        """
        Count bookings grouped by status.

        Every status is present in the result, including those with 0 bookings.
        """
        status_counts = {status.value: 0 for status in BookingStatus}
        if scope.is_empty:
            return status_counts
        try:
            rows = (
                self._scoped(self.db.query(Booking.status, func.count(Booking.id).label("count")), scope)
                .group_by(Booking.status)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting bookings by status: {str(e)}")
            raise RepositoryException(f"Failed to count bookings by status: {str(e)}") from e

        for row in rows:
            if row.status:
                status_counts[row.status] = row.count
        return status_counts

    def sum_successful_payments(self, scope: BookingScope) -> Decimal:
        """Total of ``payment_amount`` over bookings whose payment succeeded."""
        if scope.is_empty:
            return Decimal("0")
        query = self._scoped(
            self.db.query(func.coalesce(func.sum(Booking.payment_amount), 0)), scope
        ).filter(Booking.payment_status == PaymentStatus.SUCCESS.value)
        return Decimal(str(self._execute_scalar(query) or 0))

    def bookings_by_lot(self, lot_ids: Sequence[str]) -> List[Dict[str, Any]]:
        """Per-lot totals: bookings, successful payments and revenue."""
        if not lot_ids:
            return []
        paid = Booking.payment_status == PaymentStatus.SUCCESS.value
        try:
            rows = (
                self.db.query(
                    ParkingLot.id.label("parking_lot_id"),
                    ParkingLot.name,
                    ParkingLot.location,
                    func.count(Booking.id).label("total_bookings"),
                    func.coalesce(func.sum(case((paid, 1), else_=0)), 0).label(
                        "successful_bookings"
                    ),
                    func.coalesce(
                        func.sum(case((paid, Booking.payment_amount), else_=0)), 0
                    ).label("revenue"),
                )
                .join(Booking, Booking.parking_lot_id == ParkingLot.id)
                .filter(ParkingLot.id.in_(list(lot_ids)))
                .group_by(ParkingLot.id, ParkingLot.name, ParkingLot.location)
                .order_by(ParkingLot.name, ParkingLot.id)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error aggregating bookings by lot: {str(e)}")
            raise RepositoryException(f"Failed to aggregate bookings by lot: {str(e)}") from e

        return [
            {
                "parking_lot_id": row.parking_lot_id,
                "name": row.name,
                "location": row.location,
                "total_bookings": int(row.total_bookings),
                "successful_bookings": int(row.successful_bookings),
                "revenue": Decimal(str(row.revenue)),
            }
            for row in rows
        ]

    def start_time_bounds(
        self, scope: BookingScope
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        """Earliest and latest booking start in scope; ``(None, None)`` when there are none."""
        if scope.is_empty:
            return None, None
        try:
            row = self._scoped(
                self.db.query(func.min(Booking.start_time), func.max(Booking.start_time)), scope
            ).one()
        except SQLAlchemyError as e:
            self.logger.error(f"Error reading booking date range: {str(e)}")
            raise RepositoryException(f"Failed to read booking date range: {str(e)}") from e
        return row[0], row[1]

    def monthly_totals(
        self, lot_ids: Sequence[str], windows: Sequence[TimeRange]
    ) -> List[Tuple[Decimal, int]]:
        """
        Revenue and booking count per window, in window order.

        Revenue counts successful payments by ``paid_at``; bookings are counted
        by ``created_at``. Each total is one grouped query over a bucket index.
        """
        totals: List[Tuple[Decimal, int]] = [(Decimal("0"), 0) for _ in windows]
        if not lot_ids or not windows:
            return totals

        revenue_bucket = self._window_bucket(Booking.payment_paid_at, windows)
        created_bucket = self._window_bucket(Booking.created_at, windows)
        try:
            revenue_rows = (
                self.db.query(
                    revenue_bucket,
                    func.coalesce(func.sum(Booking.payment_amount), 0).label("revenue"),
                )
                .filter(
                    Booking.parking_lot_id.in_(list(lot_ids)),
                    Booking.payment_status == PaymentStatus.SUCCESS.value,
                    Booking.payment_paid_at >= windows[0].start,
                    Booking.payment_paid_at < windows[-1].end,
                )
                .group_by(revenue_bucket)
                .all()
            )
            booking_rows = (
                self.db.query(created_bucket, func.count(Booking.id).label("bookings"))
                .filter(
                    Booking.parking_lot_id.in_(list(lot_ids)),
                    Booking.created_at >= windows[0].start,
                    Booking.created_at < windows[-1].end,
                )
                .group_by(created_bucket)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error aggregating monthly totals: {str(e)}")
            raise RepositoryException(f"Failed to aggregate monthly totals: {str(e)}") from e

        for row in revenue_rows:
            if row.bucket is not None:
                totals[row.bucket] = (Decimal(str(row.revenue)), totals[row.bucket][1])
        for row in booking_rows:
            if row.bucket is not None:
                totals[row.bucket] = (totals[row.bucket][0], int(row.bookings))
        return totals

    def list_created_between(
        self, scope: BookingScope, created_from: datetime, created_to: datetime
    ) -> List[Booking]:
        """Bookings in scope created within ``[created_from, created_to]``."""
        if scope.is_empty:
            return []
        query = (
            self._scoped(self.db.query(Booking), scope)
            .filter(Booking.created_at >= created_from, Booking.created_at <= created_to)
            .order_by(Booking.created_at, Booking.id)
        )
        return self._execute_query(query)

    def count_active_at(self, lot_ids: Sequence[str], moment: datetime) -> Dict[str, int]:
        """Booked bookings covering ``moment`` per lot (live occupancy)."""
        if not lot_ids:
            return {}
        try:
            rows = (
                self.db.query(Booking.parking_lot_id, func.count(Booking.id).label("count"))
                .filter(
                    Booking.parking_lot_id.in_(list(lot_ids)),
                    Booking.status == BookingStatus.BOOKED.value,
                    Booking.start_time <= moment,
                    Booking.end_time > moment,
                )
                .group_by(Booking.parking_lot_id)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting live occupancy: {str(e)}")
            raise RepositoryException(f"Failed to count occupancy: {str(e)}") from e
        return {row.parking_lot_id: int(row.count) for row in rows}

    # Maintenance

    def list_elapsed_booked(self, now: datetime, limit: Optional[int] = None) -> List[Booking]:
        """Active bookings whose end time has passed; candidates for completion."""
        query = (
            self.db.query(Booking)
            .filter(Booking.status == BookingStatus.BOOKED.value, Booking.end_time <= now)
            .order_by(Booking.end_time, Booking.id)
        )
        if limit is not None:
            query = query.limit(limit)
        return self._execute_query(query)

    # Helpers

    def _with_details(self, query: Query) -> Query:
        return query.options(joinedload(Booking.parking_lot), joinedload(Booking.vehicle_details))

    @staticmethod
    def _window_bucket(column: Any, windows: Sequence[TimeRange]) -> Any:
        """Index of the window containing ``column``, NULL outside every window."""
        return case(
            *[
                (and_(column >= window.start, column < window.end), index)
                for index, window in enumerate(windows)
            ],
            else_=None,
        ).label("bucket")

    def _scoped(self, query: Query, scope: BookingScope) -> Query:
        if scope.booked_by_id is not None:
            query = query.filter(Booking.booked_by_id == scope.booked_by_id)
        if scope.lot_ids is not None:
            query = query.filter(Booking.parking_lot_id.in_(list(scope.lot_ids)))
        return query

    def _filtered(self, scope: BookingScope, filters: Optional[BookingFilters]) -> Query:
        query = self._scoped(self.db.query(Booking), scope)
        if filters is None:
            return query

        if filters.status:
            query = query.filter(Booking.status == filters.status)
        elif filters.exclude_cancelled:
            query = query.filter(Booking.status != BookingStatus.CANCELLED.value)

        if filters.payment_status:
            query = query.filter(Booking.payment_status == filters.payment_status)
        if filters.parking_lot_id:
            query = query.filter(Booking.parking_lot_id == filters.parking_lot_id)
        if filters.start_from is not None:
            query = query.filter(Booking.start_time >= filters.start_from)
        if filters.start_to is not None:
            query = query.filter(Booking.start_time <= filters.start_to)
        if filters.ended_before is not None:
            query = query.filter(Booking.end_time < filters.ended_before)
        if filters.starting_after is not None:
            query = query.filter(Booking.start_time > filters.starting_after)
        return query
