# backend/parkbook/core/enums.py
"""
Core enums for the ParkBook backend.

Booking and payment states live with the lifecycle rules in
``parkbook.domain.booking_lifecycle``; this module only carries values that
the identity layer hands us.
"""

from enum import Enum


class RoleName(str, Enum):
    """Roles supplied by the upstream auth middleware."""

    USER = "user"
    COMPANY = "company"


class TimeFilter(str, Enum):
    """History filters over the booking window relative to now."""

    PAST = "past"
    UPCOMING = "upcoming"
