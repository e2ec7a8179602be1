"""
Webhook reconciliation: idempotent, never trusting unverified events.
"""

from datetime import timedelta

import pytest

from parkbook.core.exceptions import ForbiddenException, InvalidSignatureException, NotFoundException
from parkbook.domain.booking_lifecycle import Payment, PaymentStatus
from parkbook.repositories.booking_repository import BookingRepository
from parkbook.services.payment_service import PaymentService, ReconcileOutcome


@pytest.fixture
def payment_service(db):
    return PaymentService(db)


@pytest.fixture
def pending_booking(booking_service, lot, alice, tomorrow_9am):
    return booking_service.create_booking(alice, lot.id, tomorrow_9am, tomorrow_9am + timedelta(hours=1))


class TestReconcile:
    def test_success_is_applied_once(self, db, payment_service, pending_booking):
        reference = pending_booking.payment_reference

        first = payment_service.reconcile("charge.success", reference, True)
        db.refresh(pending_booking)
        paid_at = pending_booking.payment.paid_at

        second = payment_service.reconcile("charge.success", reference, True)
        db.refresh(pending_booking)

        assert first.outcome == ReconcileOutcome.APPLIED
        assert first.changed
        assert first.booking_id == pending_booking.id
        assert second.outcome == ReconcileOutcome.UNCHANGED
        assert pending_booking.payment.status == PaymentStatus.SUCCESS
        assert paid_at is not None
        assert pending_booking.payment.paid_at == paid_at

    def test_late_failure_does_not_override_success(self, db, payment_service, pending_booking):
        reference = pending_booking.payment_reference
        payment_service.reconcile("charge.success", reference, True)

        result = payment_service.reconcile("charge.failed", reference, True)
        db.refresh(pending_booking)

        assert result.outcome == ReconcileOutcome.UNCHANGED
        assert result.payment_status == PaymentStatus.SUCCESS
        assert pending_booking.payment.status == PaymentStatus.SUCCESS

    def test_failed_then_success(self, db, payment_service, pending_booking):
        reference = pending_booking.payment_reference

        failed = payment_service.reconcile("charge.failed", reference, True)
        recovered = payment_service.reconcile("charge.success", reference, True)
        db.refresh(pending_booking)

        assert failed.payment_status == PaymentStatus.FAILED
        assert recovered.outcome == ReconcileOutcome.APPLIED
        assert pending_booking.payment.status == PaymentStatus.SUCCESS
        assert pending_booking.payment.paid_at is not None

    def test_unknown_reference_is_reported_not_raised(self, payment_service):
        result = payment_service.reconcile("charge.success", "PAY-UNKNOWN", True)
        assert result.outcome == ReconcileOutcome.NOT_FOUND

        missing_reference = payment_service.reconcile("charge.failed", None, True)
        assert missing_reference.outcome == ReconcileOutcome.NOT_FOUND

    def test_unhandled_event_is_ignored(self, db, payment_service, pending_booking):
        result = payment_service.reconcile("transfer.success", pending_booking.payment_reference, True)
        db.refresh(pending_booking)

        assert result.outcome == ReconcileOutcome.IGNORED
        assert pending_booking.payment.status == PaymentStatus.PENDING

    def test_invalid_signature_changes_nothing(self, db, payment_service, pending_booking):
        with pytest.raises(InvalidSignatureException):
            payment_service.reconcile("charge.success", pending_booking.payment_reference, False)

        db.refresh(pending_booking)
        assert pending_booking.payment.status == PaymentStatus.PENDING

    def test_compare_and_set_loses_to_concurrent_writer(self, db, payment_service, pending_booking):
        repository = BookingRepository(db)
        current = pending_booking.payment
        paid = Payment(
            reference=current.reference,
            amount=current.amount,
            status=PaymentStatus.SUCCESS,
            paid_at=pending_booking.start_time,
        )

        assert repository.compare_and_set_payment(pending_booking.id, "pending", paid)
        assert not repository.compare_and_set_payment(pending_booking.id, "pending", paid)
        db.commit()


class TestVerifyPayment:
    def test_booker_and_lot_owner_can_verify(self, payment_service, pending_booking, alice, company):
        reference = pending_booking.payment_reference

        assert payment_service.verify_payment(reference, alice).booking.id == pending_booking.id
        assert payment_service.verify_payment(reference, company).booking.id == pending_booking.id

    def test_stranger_is_forbidden(self, payment_service, pending_booking, bob):
        with pytest.raises(ForbiddenException):
            payment_service.verify_payment(pending_booking.payment_reference, bob)

    def test_unknown_reference(self, payment_service, alice):
        with pytest.raises(NotFoundException) as exc_info:
            payment_service.verify_payment("PAY-UNKNOWN", alice)
        assert exc_info.value.code == "PAYMENT_REFERENCE_NOT_FOUND"
