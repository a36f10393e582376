"""OAuth State — signed, expiring state token carried through the provider redirect.

Invariants:
    - decode_state(encode_state(u, o)) recovers exactly (u, o) within the TTL
    - A state signed under another secret, edited in transit, or older than the TTL
      is rejected with InvalidOAuthState (never silently accepted)
    - Pure: the caller supplies the secret, clock and nonce source

Design Decisions:
    - HMAC-SHA256 over a base64url JSON payload: stateless issuance, no server-side
      storage between authorize and callback, but not forgeable for another user
    - Nonce makes two states for the same user unlinkable; replay within the TTL is
      bounded by the single-use authorization code on the provider side
    - Format "<payload>.<signature>", both base64url without padding: URL-safe
"""

import base64
import hashlib
import hmac
import json
import secrets
import time
from dataclasses import dataclass

DEFAULT_TTL_SECONDS = 600


class InvalidOAuthState(ValueError):
    """State missing, malformed, tampered with, or expired."""


@dataclass(frozen=True)
class OAuthState:
    user_id: str
    return_origin: str
    issued_at: int
    nonce: str


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


def _sign(payload: str, secret: str) -> str:
    digest = hmac.new(
        secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256,
    ).digest()
    return _b64encode(digest)


def encode_state(
    user_id: str,
    return_origin: str,
    secret: str,
    *,
    now: float | None = None,
    nonce: str | None = None,
) -> str:
    """Serialize and sign (user_id, return_origin)."""
    if not user_id:
        raise InvalidOAuthState("user_id is required")
    body = {
        "uid": user_id,
        "ro": return_origin or "",
        "iat": int(now if now is not None else time.time()),
        "n": nonce or secrets.token_urlsafe(12),
    }
    payload = _b64encode(
        json.dumps(body, separators=(",", ":"), sort_keys=True).encode("utf-8"),
    )
    return f"{payload}.{_sign(payload, secret)}"


def decode_state(
    state: str | None,
    secret: str,
    *,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
    now: float | None = None,
) -> OAuthState:
    """Verify signature and expiry, then return the embedded state."""
    if not state or state.count(".") != 1:
        raise InvalidOAuthState("state missing or malformed")
    payload, signature = state.split(".", 1)
    if not hmac.compare_digest(
        _sign(payload, secret).encode("ascii"), signature.encode("utf-8"),
    ):
        raise InvalidOAuthState("state signature mismatch")
    try:
        body = json.loads(_b64decode(payload))
        decoded = OAuthState(
            user_id=str(body["uid"]),
            return_origin=str(body.get("ro", "")),
            issued_at=int(body["iat"]),
            nonce=str(body.get("n", "")),
        )
    except (ValueError, KeyError, TypeError) as e:
        raise InvalidOAuthState("state payload unreadable") from e

    if not decoded.user_id:
        raise InvalidOAuthState("state has no user")
    current = now if now is not None else time.time()
    if current - decoded.issued_at > ttl_seconds:
        raise InvalidOAuthState("state expired")
    if decoded.issued_at - current > 60:
        raise InvalidOAuthState("state issued in the future")
    return decoded
