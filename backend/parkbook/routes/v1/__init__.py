# backend/parkbook/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import bookings, company, health, payments

__all__ = [
    "bookings",
    "company",
    "health",
    "payments",
]
