# backend/parkbook/api/dependencies/__init__.py
"""
Central export point for all dependencies.
"""

from .auth import get_current_actor, require_company
from .database import get_db
from .services import (
    get_analytics_service,
    get_booking_service,
    get_payment_service,
)

__all__ = [
    # Auth
    "get_current_actor",
    "require_company",
    # Database
    "get_db",
    # Services
    "get_analytics_service",
    "get_booking_service",
    "get_payment_service",
]
