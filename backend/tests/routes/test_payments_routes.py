"""HTTP contract of /api/v1/payments."""

from datetime import timedelta

import pytest

from parkbook.domain.booking_lifecycle import PaymentStatus

WEBHOOK = "/api/v1/payments/webhook"


@pytest.fixture
def pending_booking(booking_service, lot, alice, tomorrow_9am):
    return booking_service.create_booking(alice, lot.id, tomorrow_9am, tomorrow_9am + timedelta(hours=1))


def _event(kind, reference):
    return {"event": kind, "data": {"reference": reference, "amount": 250, "currency": "NGN"}}


class TestWebhook:
    def test_success_event_marks_payment(self, client, db, signed_webhook, pending_booking):
        reference = pending_booking.payment_reference

        response = client.post(WEBHOOK, **signed_webhook(_event("charge.success", reference)))

        assert response.status_code == 200
        assert response.json() == {"success": True, "event": "charge.success", "outcome": "applied"}
        db.refresh(pending_booking)
        assert pending_booking.payment.status == PaymentStatus.SUCCESS

    def test_replayed_success_is_unchanged(self, client, db, signed_webhook, pending_booking):
        request = signed_webhook(_event("charge.success", pending_booking.payment_reference))

        client.post(WEBHOOK, **request)
        db.refresh(pending_booking)
        paid_at = pending_booking.payment.paid_at

        response = client.post(WEBHOOK, **request)
        assert response.status_code == 200
        assert response.json()["outcome"] == "unchanged"
        db.refresh(pending_booking)
        assert pending_booking.payment.paid_at == paid_at

    def test_bad_signature_is_rejected(self, client, db, signed_webhook, pending_booking):
        request = signed_webhook(
            _event("charge.success", pending_booking.payment_reference), secret="wrong-secret"
        )

        response = client.post(WEBHOOK, **request)

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_SIGNATURE"
        db.refresh(pending_booking)
        assert pending_booking.payment.status == PaymentStatus.PENDING

    def test_missing_signature_is_rejected(self, client, pending_booking):
        response = client.post(WEBHOOK, json=_event("charge.success", pending_booking.payment_reference))
        assert response.status_code == 400

    def test_unknown_reference_is_acknowledged(self, client, signed_webhook):
        response = client.post(WEBHOOK, **signed_webhook(_event("charge.success", "PAY-NOPE")))

        assert response.status_code == 200
        assert response.json()["outcome"] == "not_found"

    def test_unhandled_event_is_acknowledged(self, client, signed_webhook, pending_booking):
        response = client.post(
            WEBHOOK, **signed_webhook(_event("refund.processed", pending_booking.payment_reference))
        )

        assert response.status_code == 200
        assert response.json()["outcome"] == "ignored"

    def test_verified_but_malformed_body(self, client, signed_webhook):
        response = client.post(WEBHOOK, **signed_webhook({"event": "charge.success", "data": "oops"}))

        assert response.status_code == 200
        assert response.json()["outcome"] == "ignored"

    def test_unverified_malformed_body(self, client):
        response = client.post(
            WEBHOOK, content=b"not json", headers={"x-paystack-signature": "deadbeef"}
        )
        assert response.status_code == 400


class TestVerifyRoute:
    def test_booker_sees_payment(self, client, actor_headers, signed_webhook, alice, pending_booking):
        reference = pending_booking.payment_reference
        client.post(WEBHOOK, **signed_webhook(_event("charge.success", reference)))

        response = client.get(f"/api/v1/payments/verify/{reference}", headers=actor_headers(alice))

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == pending_booking.id
        assert body["payment"]["status"] == "success"
        assert body["payment"]["paid_at"] is not None

    def test_stranger_is_forbidden(self, client, actor_headers, bob, pending_booking):
        response = client.get(
            f"/api/v1/payments/verify/{pending_booking.payment_reference}", headers=actor_headers(bob)
        )
        assert response.status_code == 403

    def test_unknown_reference(self, client, actor_headers, alice):
        response = client.get("/api/v1/payments/verify/PAY-NOPE", headers=actor_headers(alice))
        assert response.status_code == 404
