# backend/parkbook/services/payment_service.py
"""
Payment Service for ParkBook

Reconciles payment provider events with bookings and serves payment lookups.

The provider signs every webhook with an HMAC-SHA512 of the raw body. The route
verifies the signature (``parkbook.domain.signatures``) and hands the verdict
to ``reconcile``; the reconciler never trusts an unverified event.

Reconciliation is idempotent: replaying ``charge.success`` keeps the first
``paid_at``, and a late ``charge.failed`` never overrides a success. Payment
writes are compare-and-set on the stored payment status, so two concurrent
deliveries for the same reference cannot both record a payment.
"""

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.constants import CHARGE_FAILED_EVENT, CHARGE_SUCCESS_EVENT
from ..core.exceptions import ForbiddenException, InvalidSignatureException, NotFoundException
from ..domain.booking_lifecycle import (
    Payment,
    PaymentStatus,
    apply_payment_failure,
    apply_payment_success,
)
from ..domain.time_range import utc_now
from ..models.booking import Booking
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..principal import Actor
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .booking_service import BookingService, BookingView

logger = logging.getLogger(__name__)

# Compare-and-set attempts per event; each retry re-reads the stored payment
_MAX_APPLY_ATTEMPTS = 3


class ReconcileOutcome(str, Enum):
    APPLIED = "applied"
    UNCHANGED = "unchanged"
    NOT_FOUND = "not_found"
    IGNORED = "ignored"


@dataclass(frozen=True)
class ReconcileResult:
    outcome: ReconcileOutcome
    event: str
    reference: Optional[str] = None
    booking_id: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None

    @property
    def changed(self) -> bool:
        return self.outcome == ReconcileOutcome.APPLIED


class PaymentService(BaseService):
    """Webhook reconciliation and payment verification."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    @BaseService.measure_operation("reconcile")
    def reconcile(
        self, event_kind: str, reference: Optional[str], signature_valid: bool
    ) -> ReconcileResult:
        """
        Apply a provider event to the booking carrying ``reference``.

        Args:
            event_kind: ``charge.success`` or ``charge.failed``; anything else is ignored
            reference: Payment reference from the event payload
            signature_valid: Outcome of signature verification over the raw body

        Returns:
            ReconcileResult describing what happened. Unknown references are
            reported as ``not_found`` rather than raised.

        Raises:
            InvalidSignatureException: If the event was not verified
        """
        if not signature_valid:
            prometheus_metrics.record_webhook_event(event_kind, "invalid_signature")
            raise InvalidSignatureException()

        if event_kind not in (CHARGE_SUCCESS_EVENT, CHARGE_FAILED_EVENT):
            self.logger.info(f"Ignoring unhandled payment event: {event_kind}")
            return self._finish(ReconcileResult(ReconcileOutcome.IGNORED, event_kind, reference))

        self.log_operation("reconcile", event_kind=event_kind, reference=reference)

        with self.transaction():
            booking = (
                self.booking_repository.find_by_payment_reference(reference) if reference else None
            )
            if booking is None or booking.payment is None:
                if event_kind == CHARGE_SUCCESS_EVENT:
                    self.logger.warning(f"No booking found for successful payment {reference}")
                else:
                    self.logger.info(f"No booking found for failed payment {reference}")
                return self._finish(
                    ReconcileResult(ReconcileOutcome.NOT_FOUND, event_kind, reference)
                )

            payment, changed = self._apply(booking, event_kind)

        outcome = ReconcileOutcome.APPLIED if changed else ReconcileOutcome.UNCHANGED
        if changed:
            self.logger.info(
                f"Payment {reference} for booking {booking.id} is now {payment.status.value}"
            )
        return self._finish(
            ReconcileResult(outcome, event_kind, reference, booking.id, payment.status)
        )

    def _apply(self, booking: Booking, event_kind: str) -> tuple[Payment, bool]:
        booking_id = booking.id
        current = booking.payment
        for _ in range(_MAX_APPLY_ATTEMPTS):
            if current is None:
                raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
            if event_kind == CHARGE_SUCCESS_EVENT:
                updated, changed = apply_payment_success(current, utc_now())
            else:
                updated, changed = apply_payment_failure(current)

            if not changed:
                return current, False
            if self.booking_repository.compare_and_set_payment(
                booking_id, current.status.value, updated
            ):
                self.booking_repository.reload(booking_id)
                return updated, True

            # Another delivery changed the payment between read and write.
            fresh = self.booking_repository.reload(booking_id)
            current = fresh.payment if fresh is not None else None

        self.logger.warning(f"Gave up applying {event_kind} to booking {booking_id}")
        if current is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        return current, False

    @staticmethod
    def _finish(result: ReconcileResult) -> ReconcileResult:
        prometheus_metrics.record_webhook_event(result.event, result.outcome.value)
        return result

    @BaseService.measure_operation("verify_payment")
    def verify_payment(self, reference: str, actor: Actor) -> BookingView:
        """
        The booking behind a payment reference.

        Visible to the booker and to the owner of the lot.
        """
        booking = self.booking_repository.find_by_payment_reference(reference)
        if booking is None:
            raise NotFoundException("Booking not found", code="PAYMENT_REFERENCE_NOT_FOUND")
        if not BookingService.can_view(booking, actor):
            raise ForbiddenException(
                "Not authorized to view this payment", code="NOT_BOOKING_PARTICIPANT"
            )
        return BookingService.view(booking, utc_now())
