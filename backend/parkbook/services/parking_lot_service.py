"""
Parking lot directory.

Lots are owned by the company that created them. Only the fields the
allocator needs are managed here: name, location, spot count and hourly rate.
"""

from decimal import Decimal
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.constants import MAX_LOT_NAME_LENGTH, MAX_TOTAL_SPOTS
from ..core.exceptions import ForbiddenException, NotFoundException, ValidationException
from ..domain.time_range import utc_now
from ..models.parking_lot import ParkingLot
from ..principal import Actor
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class ParkingLotService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.parking_lot_repository = RepositoryFactory.create_parking_lot_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    def get_lot(self, lot_id: str) -> ParkingLot:
        lot = self.parking_lot_repository.get_by_id(lot_id)
        if lot is None:
            raise NotFoundException("Parking lot not found", code="PARKING_LOT_NOT_FOUND")
        return lot

    def list_owned_lots(self, owner: Actor) -> List[ParkingLot]:
        return self.parking_lot_repository.list_for_owner(owner.id)

    @BaseService.measure_operation("create_lot")
    def create_lot(
        self,
        owner: Actor,
        *,
        name: str,
        location: str,
        total_spots: int,
        hourly_rate: Decimal,
    ) -> ParkingLot:
        """Create a lot owned by ``owner``. Only companies may own lots."""
        self._require_company(owner)
        name = (name or "").strip()
        location = (location or "").strip()
        if not name or len(name) > MAX_LOT_NAME_LENGTH:
            raise ValidationException(
                f"Name must be 1-{MAX_LOT_NAME_LENGTH} characters", code="INVALID_LOT_NAME"
            )
        if not location:
            raise ValidationException("Please provide parking lot location", code="INVALID_LOCATION")
        self._validate_total_spots(total_spots)
        rate = Decimal(str(hourly_rate))
        if rate < 0:
            raise ValidationException("Hourly rate cannot be negative", code="INVALID_HOURLY_RATE")

        self.log_operation("create_lot", owner_id=owner.id, total_spots=total_spots)
        with self.transaction():
            lot = self.parking_lot_repository.create(
                name=name,
                location=location,
                owner_id=owner.id,
                total_spots=total_spots,
                hourly_rate=rate,
                available_spots=total_spots,
            )
        return lot

    @BaseService.measure_operation("resize_lot")
    def resize_lot(self, lot_id: str, owner: Actor, total_spots: int) -> ParkingLot:
        """
        Change a lot's spot count.

        Existing bookings on spot numbers above the new count are kept as they
        are; they simply stop being candidates for new allocations.
        """
        self._validate_total_spots(total_spots)
        with self.transaction():
            lot = self.parking_lot_repository.acquire_allocation_lock(lot_id)
            if lot is None:
                raise NotFoundException("Parking lot not found", code="PARKING_LOT_NOT_FOUND")
            if lot.owner_id != owner.id:
                raise ForbiddenException(
                    "Not authorized to modify this parking lot", code="NOT_LOT_OWNER"
                )

            lot.total_spots = total_spots
            occupied = self.booking_repository.count_active_at([lot.id], utc_now()).get(lot.id, 0)
            self.parking_lot_repository.set_available_spots(lot, total_spots - occupied)

        self.logger.info(f"Resized lot {lot_id} to {total_spots} spots")
        return lot

    @staticmethod
    def _require_company(actor: Actor) -> None:
        if not actor.is_company:
            raise ForbiddenException(
                "Only companies can manage parking lots", code="COMPANY_ROLE_REQUIRED"
            )

    @staticmethod
    def _validate_total_spots(total_spots: Optional[int]) -> None:
        if total_spots is None or total_spots < 1 or total_spots > MAX_TOTAL_SPOTS:
            raise ValidationException(
                f"Total spots must be between 1 and {MAX_TOTAL_SPOTS}",
                code="INVALID_TOTAL_SPOTS",
                details={"total_spots": total_spots},
            )
