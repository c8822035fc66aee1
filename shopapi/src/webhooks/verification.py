"""Stripe webhook signature verification.

Stripe signs each delivery with the endpoint secret and sends
``Stripe-Signature: t=<timestamp>,v1=<hex hmac>[,v1=...]``. The signed
payload is ``"<timestamp>." + raw body``, which is why the route must see
the body bytes exactly as received.

- Comparison is constant-time (hmac.compare_digest)
- A missing secret fails closed
- Timestamps outside the tolerance window are rejected (replay protection)
"""

import hashlib
import hmac
import time
from typing import Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_TOLERANCE = 300

SIGNATURE_SCHEME = "v1"


def parse_signature_header(header: str) -> Dict[str, List[str]]:
    """Split ``t=...,v1=...,v1=...`` into a key -> values mapping."""
    parts: Dict[str, List[str]] = {}
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if sep and key and value:
            parts.setdefault(key, []).append(value)
    return parts


def compute_signature(payload: bytes, secret: str, timestamp: int) -> str:
    """HMAC-SHA256 hex digest Stripe expects for ``payload`` at ``timestamp``."""
    signed_payload = f"{timestamp}.".encode("utf-8") + payload
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


def verify_stripe_signature(
    payload: bytes,
    signature_header: Optional[str],
    secret: Optional[str],
    tolerance: int = DEFAULT_TOLERANCE,
    now: Optional[float] = None,
) -> bool:
    """Verify a Stripe webhook signature (v1 scheme).

    Args:
        payload: Raw request body bytes
        signature_header: Value of the Stripe-Signature header
        secret: Endpoint signing secret
        tolerance: Maximum accepted age of the signature in seconds
        now: Current unix time, for tests

    Returns:
        True if one of the v1 signatures matches and the timestamp is fresh
    """
    if not secret:
        logger.warning("stripe_webhook_secret_missing")
        return False
    if not signature_header:
        return False

    parts = parse_signature_header(signature_header)

    timestamps = parts.get("t")
    if not timestamps:
        return False
    try:
        timestamp = int(timestamps[0])
    except ValueError:
        return False

    current = time.time() if now is None else now
    if abs(current - timestamp) > tolerance:
        logger.warning("stripe_webhook_timestamp_outside_tolerance", timestamp=timestamp)
        return False

    signatures = parts.get(SIGNATURE_SCHEME)
    if not signatures:
        return False

    expected = compute_signature(payload, secret, timestamp)
    return any(hmac.compare_digest(expected, sig) for sig in signatures)
