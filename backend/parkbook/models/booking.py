# backend/parkbook/models/booking.py
"""
Booking model for the ParkBook backend.

A booking reserves one numbered spot of one lot for ``[start_time, end_time)``.
The payment is an embedded value (``payment_*`` columns) exposed through the
``payment`` property as a ``Payment`` dataclass; it is never shared between
bookings.

Invariant: for a fixed (parking_lot_id, spot_number), bookings with
status ``booked`` never overlap. It is enforced by the allocation lock in
``BookingService`` rather than by an index, since ranges cannot be expressed
as a plain unique key.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import relationship

from ..core.ulid_helper import generate_ulid
from ..database import Base
from ..domain.booking_lifecycle import BookingStatus, Payment, PaymentStatus
from ..domain.time_range import TimeRange, utc_now
from .types import UTCDateTime


class Booking(Base):
    """Time-bounded reservation of one spot."""

    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_bookings_time_order"),
        CheckConstraint("spot_number >= 1", name="ck_bookings_spot_number"),
        CheckConstraint(
            "status IN ('booked', 'cancelled', 'completed')", name="ck_bookings_status"
        ),
        CheckConstraint(
            "payment_status IS NULL OR payment_status IN ('pending', 'success', 'failed')",
            name="ck_bookings_payment_status",
        ),
        Index("ix_bookings_lot_spot_window", "parking_lot_id", "spot_number", "start_time", "end_time"),
        Index("ix_bookings_booker_start", "booked_by_id", "start_time"),
    )

    id = Column(String(26), primary_key=True, default=generate_ulid)

    parking_lot_id = Column(
        String(26), ForeignKey("parking_lots.id", ondelete="RESTRICT"), nullable=False
    )
    spot_number = Column(Integer, nullable=False)
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)

    booked_by_id = Column(String(26), nullable=False)
    vehicle_details_id = Column(
        String(26), ForeignKey("vehicle_details.id"), nullable=True, unique=True
    )

    status = Column(String(20), nullable=False, default=BookingStatus.BOOKED.value, index=True)

    # Embedded payment value
    payment_reference = Column(String(64), nullable=True, unique=True)
    payment_amount = Column(Numeric(10, 2), nullable=True)
    payment_status = Column(String(20), nullable=True, index=True)
    payment_paid_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=utc_now)
    cancelled_at = Column(UTCDateTime, nullable=True)
    completed_at = Column(UTCDateTime, nullable=True)

    parking_lot = relationship("ParkingLot", back_populates="bookings")
    vehicle_details = relationship("VehicleDetails", uselist=False)

    @property
    def booking_status(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(self.start_time, self.end_time)

    @property
    def payment(self) -> Optional[Payment]:
        if self.payment_reference is None:
            return None
        return Payment(
            reference=self.payment_reference,
            amount=Decimal(self.payment_amount if self.payment_amount is not None else 0),
            status=PaymentStatus(self.payment_status or PaymentStatus.PENDING.value),
            paid_at=self.payment_paid_at,
        )

    @payment.setter
    def payment(self, value: Optional[Payment]) -> None:
        if value is None:
            self.payment_reference = None
            self.payment_amount = None
            self.payment_status = None
            self.payment_paid_at = None
            return
        self.payment_reference = value.reference
        self.payment_amount = value.amount
        self.payment_status = value.status.value
        self.payment_paid_at = value.paid_at

    def is_booker(self, actor_id: str) -> bool:
        return self.booked_by_id == actor_id

    def mark_cancelled(self, now: datetime) -> None:
        self.status = BookingStatus.CANCELLED.value
        self.cancelled_at = now

    def mark_completed(self, now: datetime) -> None:
        self.status = BookingStatus.COMPLETED.value
        self.completed_at = now

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id} lot={self.parking_lot_id} spot={self.spot_number} "
            f"status={self.status}>"
        )
