"""
Booking lifecycle rules.

A booking moves along two independent axes:

* status: ``booked`` -> ``cancelled`` (booker only, strictly before start) or
  ``booked`` -> ``completed`` (once the end time has passed). Both targets are
  terminal.
* payment: ``pending`` -> ``success`` | ``failed``. A success event for a
  payment that previously failed is accepted because the provider reports
  late retries that way. Replays of the current state are no-ops.

Everything here is pure; persistence happens in the services.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from ..core.exceptions import ForbiddenException, InvalidStateException
from .time_range import ensure_utc


class BookingStatus(str, Enum):
    BOOKED = "booked"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class TimeStatus(str, Enum):
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    PAST = "past"
    CANCELLED = "cancelled"


_STATUS_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.BOOKED: frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}

_PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.SUCCESS, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.SUCCESS}),
    PaymentStatus.SUCCESS: frozenset(),
}


@dataclass(frozen=True)
class Payment:
    """Payment value embedded in a booking; replaced wholesale on every change."""

    reference: str
    amount: Decimal
    status: PaymentStatus = PaymentStatus.PENDING
    paid_at: Optional[datetime] = None


def can_transition_status(current: BookingStatus, target: BookingStatus) -> bool:
    return target in _STATUS_TRANSITIONS.get(current, frozenset())


def can_transition_payment(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in _PAYMENT_TRANSITIONS.get(current, frozenset())


def validate_status_transition(current: BookingStatus, target: BookingStatus) -> None:
    """Raise InvalidStateException if ``current -> target`` is not allowed."""
    if not can_transition_status(current, target):
        raise InvalidStateException(
            f"Cannot move booking from {current.value} to {target.value}",
            current=current.value,
            target=target.value,
        )


def ensure_cancellable(
    *,
    status: BookingStatus,
    booked_by_id: str,
    actor_id: str,
    start_time: datetime,
    now: datetime,
) -> None:
    """Guard for ``booked -> cancelled``.

    Raises:
        ForbiddenException: actor is not the original booker
        InvalidStateException: booking is not active or has already started
    """
    if actor_id != booked_by_id:
        raise ForbiddenException(
            "Not authorized to cancel this booking", code="NOT_BOOKING_OWNER"
        )
    validate_status_transition(status, BookingStatus.CANCELLED)
    if ensure_utc(now) >= ensure_utc(start_time):
        raise InvalidStateException(
            "Cannot cancel a booking that has already started",
            current=status.value,
            target=BookingStatus.CANCELLED.value,
        )


def apply_payment_success(payment: Payment, now: datetime) -> Tuple[Payment, bool]:
    """Return ``(payment, changed)``; replaying success keeps the original ``paid_at``."""
    if payment.status == PaymentStatus.SUCCESS:
        return payment, False
    if not can_transition_payment(payment.status, PaymentStatus.SUCCESS):
        raise InvalidStateException(
            "Payment cannot be marked successful",
            current=payment.status.value,
            target=PaymentStatus.SUCCESS.value,
        )
    return replace(payment, status=PaymentStatus.SUCCESS, paid_at=ensure_utc(now)), True


def apply_payment_failure(payment: Payment) -> Tuple[Payment, bool]:
    """Return ``(payment, changed)``; a late failure never overrides a success."""
    if not can_transition_payment(payment.status, PaymentStatus.FAILED):
        return payment, False
    return replace(payment, status=PaymentStatus.FAILED), True


def is_elapsed(status: BookingStatus, end_time: datetime, now: datetime) -> bool:
    """True when an active booking has reached its end and should read as completed."""
    return status == BookingStatus.BOOKED and ensure_utc(end_time) <= ensure_utc(now)


def effective_status(status: BookingStatus, end_time: datetime, now: datetime) -> BookingStatus:
    """Status as seen by readers: elapsed bookings are completed even before the sweep runs."""
    if is_elapsed(status, end_time, now):
        return BookingStatus.COMPLETED
    return status


def classify_time_status(
    now: datetime, start_time: datetime, end_time: datetime, status: BookingStatus
) -> TimeStatus:
    """Place a booking relative to ``now``. Callers pass one ``now`` per response."""
    if status == BookingStatus.CANCELLED:
        return TimeStatus.CANCELLED
    moment = ensure_utc(now)
    if ensure_utc(end_time) < moment:
        return TimeStatus.PAST
    if ensure_utc(start_time) <= moment:
        return TimeStatus.ONGOING
    return TimeStatus.UPCOMING
