# backend/parkbook/repositories/factory.py
"""
Repository Factory for ParkBook

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .booking_repository import BookingRepository
    from .parking_lot_repository import ParkingLotRepository
    from .vehicle_details_repository import VehicleDetailsRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        """Create repository for booking queries and allocation checks."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_parking_lot_repository(db: Session) -> "ParkingLotRepository":
        """Create repository for lot lookups and the allocation lock."""
        from .parking_lot_repository import ParkingLotRepository

        return ParkingLotRepository(db)

    @staticmethod
    def create_vehicle_details_repository(db: Session) -> "VehicleDetailsRepository":
        from .vehicle_details_repository import VehicleDetailsRepository

        return VehicleDetailsRepository(db)
