# backend/parkbook/models/__init__.py
"""SQLAlchemy models; importing this package registers every table on ``Base.metadata``."""

from .booking import Booking
from .parking_lot import ParkingLot
from .vehicle_details import VehicleDetails

__all__ = ["Booking", "ParkingLot", "VehicleDetails"]
