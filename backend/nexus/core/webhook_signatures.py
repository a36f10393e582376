"""Webhook Signatures — HMAC verification for inbound provider callbacks.

Invariants:
    - Comparison is constant-time (hmac.compare_digest)
    - Stripe: header "t=<unix>,v1=<hex>[,v1=...]", signed payload "<t>.<raw body>",
      rejected outside the tolerance window in either direction
    - Meta: header "sha256=<hex>" over the raw body with the app secret
    - Pure: raw bytes in, WebhookSignatureError out; the clock is injectable
"""

import hashlib
import hmac
import time

from nexus.core.errors import WebhookSignatureError

STRIPE_SOURCE = "stripe"
META_SOURCE = "whatsapp"


def _hex_hmac(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def _same(expected: str, received: str) -> bool:
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))


def parse_stripe_header(header: str) -> tuple[int, list[str]]:
    timestamp = None
    signatures = []
    for item in header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                raise WebhookSignatureError(STRIPE_SOURCE, "bad timestamp")
        elif key == "v1" and value:
            signatures.append(value)
    if timestamp is None or not signatures:
        raise WebhookSignatureError(STRIPE_SOURCE, "malformed signature header")
    return timestamp, signatures


def stripe_signature_header(payload: bytes, secret: str, timestamp: int) -> str:
    """Build a header exactly as Stripe would (used by tests and tooling)."""
    signed = f"{timestamp}.".encode("utf-8") + payload
    return f"t={timestamp},v1={_hex_hmac(secret, signed)}"


def verify_stripe_signature(
    payload: bytes,
    header: str | None,
    secret: str,
    *,
    tolerance_seconds: int = 300,
    now: float | None = None,
) -> None:
    if not header:
        raise WebhookSignatureError(STRIPE_SOURCE, "missing Stripe-Signature header")
    timestamp, signatures = parse_stripe_header(header)
    current = now if now is not None else time.time()
    if abs(current - timestamp) > tolerance_seconds:
        raise WebhookSignatureError(STRIPE_SOURCE, "timestamp outside tolerance")
    expected = _hex_hmac(secret, f"{timestamp}.".encode("utf-8") + payload)
    if not any(_same(expected, sig) for sig in signatures):
        raise WebhookSignatureError(STRIPE_SOURCE, "signature mismatch")


def verify_meta_signature(payload: bytes, header: str | None, app_secret: str) -> None:
    if not header or not header.startswith("sha256="):
        raise WebhookSignatureError(META_SOURCE, "missing X-Hub-Signature-256 header")
    expected = _hex_hmac(app_secret, payload)
    if not _same(expected, header[len("sha256="):]):
        raise WebhookSignatureError(META_SOURCE, "signature mismatch")
