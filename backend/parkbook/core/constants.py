"""Application-wide constants for the ParkBook backend."""

from __future__ import annotations

API_TITLE = "ParkBook API"
API_VERSION = "1.0.0"
API_DESCRIPTION = "Parking-lot reservation backend: spot allocation, bookings and payments"

# Identity headers forwarded by the upstream auth middleware
ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_ROLE_HEADER = "X-Actor-Role"

# Payment provider event kinds
CHARGE_SUCCESS_EVENT = "charge.success"
CHARGE_FAILED_EVENT = "charge.failed"

# Lot constraints
MAX_TOTAL_SPOTS = 10_000
MAX_LOT_NAME_LENGTH = 100

# Recent rows embedded in stats payloads
USER_RECENT_BOOKINGS_LIMIT = 5
COMPANY_RECENT_BOOKINGS_LIMIT = 10

# Company reports
DEFAULT_REVENUE_CHART_MONTHS = 12
MAX_REVENUE_CHART_MONTHS = 24
PEAK_HOURS_LIMIT = 5
TOP_CUSTOMERS_LIMIT = 10
