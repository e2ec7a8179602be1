"""Payment provider webhook signature verification."""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Hex HMAC-SHA512 of the raw request body."""
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()


def verify_signature(raw_body: bytes, signature: Optional[str], secret: str) -> bool:
    """
    Check ``signature`` against the HMAC-SHA512 of ``raw_body``.

    The digest must be computed over the exact bytes received, never over a
    re-serialized payload. An empty secret or missing header never verifies.
    """
    if not secret or not signature:
        return False
    expected = compute_signature(raw_body, secret)
    return hmac.compare_digest(expected, signature.strip().lower())
