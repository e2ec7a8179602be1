# backend/parkbook/repositories/__init__.py
"""
Repository layer for ParkBook.

Key Components:
- BaseRepository: generic CRUD plus commit/rollback scope
- BookingRepository: overlap checks, history and aggregates
- ParkingLotRepository: lot lookups and the per-lot allocation lock
- VehicleDetailsRepository: vehicles attached to bookings
- RepositoryFactory: central construction point used by services

Usage:
    from parkbook.repositories import RepositoryFactory

    booking_repository = RepositoryFactory.create_booking_repository(db)
"""

from .base_repository import BaseRepository
from .booking_repository import BookingFilters, BookingRepository, BookingScope
from .factory import RepositoryFactory
from .parking_lot_repository import ParkingLotRepository
from .vehicle_details_repository import VehicleDetailsRepository

__all__ = [
    "BaseRepository",
    "BookingFilters",
    "BookingRepository",
    "BookingScope",
    "ParkingLotRepository",
    "RepositoryFactory",
    "VehicleDetailsRepository",
]
