"""Webhook signature verification is a pure function over the raw body."""

import hashlib
import hmac
import json

from parkbook.domain.signatures import compute_signature, verify_signature

SECRET = "sk_test_secret"
BODY = json.dumps({"event": "charge.success", "data": {"reference": "PAY-1"}}).encode()


def test_valid_signature_verifies():
    signature = hmac.new(SECRET.encode(), BODY, hashlib.sha512).hexdigest()
    assert compute_signature(BODY, SECRET) == signature
    assert verify_signature(BODY, signature, SECRET)


def test_signature_is_case_insensitive_hex():
    assert verify_signature(BODY, compute_signature(BODY, SECRET).upper(), SECRET)


def test_wrong_secret_fails():
    assert not verify_signature(BODY, compute_signature(BODY, "other"), SECRET)


def test_reserialized_body_fails():
    signature = compute_signature(BODY, SECRET)
    reserialized = json.dumps(json.loads(BODY), separators=(",", ":")).encode()
    assert reserialized != BODY
    assert not verify_signature(reserialized, signature, SECRET)


def test_missing_signature_or_secret_never_verifies():
    assert not verify_signature(BODY, None, SECRET)
    assert not verify_signature(BODY, "", SECRET)
    assert not verify_signature(BODY, compute_signature(BODY, ""), "")
