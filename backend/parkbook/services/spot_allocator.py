# backend/parkbook/services/spot_allocator.py
"""
Spot allocation for ParkBook.

Spots in a lot are numbered ``1..total_spots``. A spot is free for a range when
no ``booked`` booking on it overlaps the range. Allocation always picks the
lowest free spot number, so results are deterministic.

``find_spot`` and ``count_available`` share ``free_spots``; a lot with a free
spot always reports ``count_available > 0`` and vice versa.

The allocator only reads. Callers that reserve the returned spot must hold the
lot's allocation lock (see ``ParkingLotRepository.acquire_allocation_lock``)
for the whole check-and-reserve.
"""

from dataclasses import dataclass, field
from datetime import date
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException, ValidationException
from ..domain.time_range import TimeRange, day_range, hourly_slots
from ..models.parking_lot import ParkingLot
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpotSlots:
    spot_number: int
    free_slots: List[TimeRange] = field(default_factory=list)


@dataclass(frozen=True)
class DaySlots:
    lot: ParkingLot
    day: date
    spots: List[SpotSlots]


class SpotAllocator(BaseService):
    """Answers "which spot is free?" for a lot and a time range."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.parking_lot_repository = RepositoryFactory.create_parking_lot_repository(db)

    def is_spot_free(self, lot_id: str, spot_number: int, time_range: TimeRange) -> bool:
        return not self.booking_repository.has_overlapping_booking(
            lot_id, spot_number, time_range.start, time_range.end
        )

    def free_spots(self, lot_id: str, time_range: TimeRange, total_spots: int) -> List[int]:
        """All free spot numbers, ascending."""
        self._validate_total_spots(total_spots)
        free: List[int] = []
        for spot_number in range(1, total_spots + 1):
            if self.is_spot_free(lot_id, spot_number, time_range):
                free.append(spot_number)
        return free

    def find_spot(self, lot_id: str, time_range: TimeRange, total_spots: int) -> Optional[int]:
        """
        Lowest free spot number, or None when every spot is taken for part of the range.

        Stops at the first free spot.
        """
        self._validate_total_spots(total_spots)
        for spot_number in range(1, total_spots + 1):
            if self.is_spot_free(lot_id, spot_number, time_range):
                return spot_number
        return None

    def count_available(self, lot_id: str, time_range: TimeRange, total_spots: int) -> int:
        return len(self.free_spots(lot_id, time_range, total_spots))

    def find_spot_for_lot(self, lot_id: str, time_range: TimeRange) -> Optional[int]:
        """``find_spot`` for a lot looked up by id."""
        lot = self.get_lot_or_404(lot_id)
        return self.find_spot(lot.id, time_range, int(lot.total_spots))

    @BaseService.measure_operation("free_slots_for_day")
    def free_slots_for_day(self, lot_id: str, day: date) -> DaySlots:
        """
        Free one-hour slots of every spot over a UTC calendar day.

        A slot is free exactly when ``is_spot_free`` would say so for its range;
        the day's bookings are read once instead of once per slot.
        """
        lot = self.get_lot_or_404(lot_id)
        total_spots = int(lot.total_spots)
        self._validate_total_spots(total_spots)
        window = day_range(day)

        busy: Dict[int, List[TimeRange]] = {}
        for booking in self.booking_repository.list_booked_overlapping(
            lot.id, window.start, window.end
        ):
            busy.setdefault(booking.spot_number, []).append(
                TimeRange(booking.start_time, booking.end_time)
            )

        slots = hourly_slots(window)
        spots = [
            SpotSlots(
                spot_number=spot_number,
                free_slots=[
                    slot
                    for slot in slots
                    if not any(slot.overlaps(taken) for taken in busy.get(spot_number, ()))
                ],
            )
            for spot_number in range(1, total_spots + 1)
        ]
        return DaySlots(lot=lot, day=day, spots=spots)

    def get_lot_or_404(self, lot_id: str) -> ParkingLot:
        lot = self.parking_lot_repository.get_by_id(lot_id)
        if lot is None:
            raise NotFoundException("Parking lot not found", code="PARKING_LOT_NOT_FOUND")
        return lot

    @staticmethod
    def _validate_total_spots(total_spots: int) -> None:
        if total_spots is None or int(total_spots) < 1:
            raise ValidationException(
                "A parking lot must have at least one spot",
                code="INVALID_TOTAL_SPOTS",
                details={"total_spots": total_spots},
            )
