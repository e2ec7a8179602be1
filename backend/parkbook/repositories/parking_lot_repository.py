"""
ParkingLot Repository

Lot lookups for the allocator plus the per-lot allocation lock.

The lock is a plain row write: ``allocation_version = allocation_version + 1``.
On PostgreSQL it holds the lot's row lock until the transaction ends; on
SQLite the first write of a transaction takes the database write lock. Either
way a second check-and-reserve on the same lot waits until the first commits
or rolls back, and then sees its bookings.
"""

import logging
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import Booking
from ..models.parking_lot import ParkingLot
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ParkingLotRepository(BaseRepository[ParkingLot]):
    """Repository for parking lot data access."""

    def __init__(self, db: Session):
        super().__init__(db, ParkingLot)

    def acquire_allocation_lock(self, lot_id: str) -> Optional[ParkingLot]:
        """
        Take the lot's allocation lock for the rest of the current transaction.

        Returns the freshly loaded lot, or None if it does not exist. Lock
        timeouts and deadlocks surface as ``OperationalError`` so the caller
        can retry.
        """
        result = self.db.execute(
            update(ParkingLot)
            .where(ParkingLot.id == lot_id)
            .values(allocation_version=ParkingLot.allocation_version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        return (
            self.db.query(ParkingLot)
            .populate_existing()
            .filter(ParkingLot.id == lot_id)
            .first()
        )

    def list_for_owner(self, owner_id: str) -> List[ParkingLot]:
        """Lots created by a company, oldest first."""
        try:
            return (
                self.db.query(ParkingLot)
                .filter(ParkingLot.owner_id == owner_id)
                .order_by(ParkingLot.created_at, ParkingLot.id)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing lots for owner {owner_id}: {str(e)}")
            raise RepositoryException(f"Failed to list parking lots: {str(e)}") from e

    def list_booked_by(self, user_id: str) -> List[ParkingLot]:
        """Lots the user has booked at least once, by name."""
        booked_lot_ids = select(Booking.parking_lot_id).where(Booking.booked_by_id == user_id)
        try:
            return (
                self.db.query(ParkingLot)
                .filter(ParkingLot.id.in_(booked_lot_ids))
                .order_by(ParkingLot.name, ParkingLot.id)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing lots booked by {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to list parking lots: {str(e)}") from e

    def set_available_spots(self, lot: ParkingLot, free_spots: int) -> None:
        """Refresh the advisory display counter (clamped to 0..total_spots)."""
        lot.available_spots = lot.clamp_available_spots(free_spots)
        self.db.flush()
