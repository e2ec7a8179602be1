# backend/parkbook/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each request gets service instances bound to its own database session.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.analytics_service import AnalyticsService
from ...services.booking_service import BookingService
from ...services.payment_service import PaymentService
from .database import get_db


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Get booking service instance."""
    return BookingService(db)


def get_payment_service(db: Session = Depends(get_db)) -> PaymentService:
    return PaymentService(db)


def get_analytics_service(db: Session = Depends(get_db)) -> AnalyticsService:
    return AnalyticsService(db)
