"""Parking lot model: the unit of spot allocation."""

from sqlalchemy import CheckConstraint, Column, Integer, Numeric, String
from sqlalchemy.orm import relationship

from ..core.ulid_helper import generate_ulid
from ..database import Base
from ..domain.time_range import utc_now
from .types import UTCDateTime


class ParkingLot(Base):
    """
    A lot with ``total_spots`` numbered spots (1..total_spots).

    ``available_spots`` is a display counter only. Allocation always recomputes
    availability from live bookings. ``allocation_version`` is bumped at the
    start of every check-and-reserve, which serializes allocations per lot.
    """

    __tablename__ = "parking_lots"
    __table_args__ = (
        CheckConstraint("total_spots >= 1", name="ck_parking_lots_total_spots"),
        CheckConstraint("hourly_rate >= 0", name="ck_parking_lots_hourly_rate"),
        CheckConstraint("available_spots >= 0", name="ck_parking_lots_available_spots"),
    )

    id = Column(String(26), primary_key=True, default=generate_ulid)
    name = Column(String(100), nullable=False)
    location = Column(String(255), nullable=False)
    owner_id = Column(String(26), nullable=False, index=True)

    total_spots = Column(Integer, nullable=False)
    hourly_rate = Column(Numeric(10, 2), nullable=False)
    available_spots = Column(Integer, nullable=False, default=0)
    allocation_version = Column(Integer, nullable=False, default=0)

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=utc_now)

    bookings = relationship("Booking", back_populates="parking_lot", passive_deletes=True)

    def clamp_available_spots(self, value: int) -> int:
        """Bound the advisory counter to ``0..total_spots``."""
        return max(0, min(int(value), int(self.total_spots)))

    def __repr__(self) -> str:
        return f"<ParkingLot {self.id} spots={self.total_spots}>"
