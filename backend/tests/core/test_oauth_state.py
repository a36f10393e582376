"""OAuth State — verifies the signed, expiring state token.

Invariants:
    - decode(encode(u, o)) == (u, o) within the TTL
    - Tampered payloads, foreign secrets, expired or future states are rejected
    - Two states for the same user differ (random nonce)
"""

import pytest

from nexus.core.oauth_state import InvalidOAuthState, decode_state, encode_state

SECRET = "state-secret"
NOW = 1_700_000_000


def test_roundtrip_recovers_user_and_origin():
    state = encode_state("user-1", "https://app.example.com", SECRET, now=NOW)
    decoded = decode_state(state, SECRET, now=NOW + 10)
    assert decoded.user_id == "user-1"
    assert decoded.return_origin == "https://app.example.com"
    assert decoded.issued_at == NOW


def test_state_is_url_safe():
    state = encode_state("user-1", "https://app.example.com/?a=b&c=d", SECRET, now=NOW)
    assert all(ch.isalnum() or ch in "-_." for ch in state)


def test_states_for_same_user_are_unlinkable():
    a = encode_state("user-1", "", SECRET, now=NOW)
    b = encode_state("user-1", "", SECRET, now=NOW)
    assert a != b


def test_foreign_secret_rejected():
    state = encode_state("user-1", "", "another-secret", now=NOW)
    with pytest.raises(InvalidOAuthState):
        decode_state(state, SECRET, now=NOW)


def test_tampered_payload_rejected():
    state = encode_state("user-1", "", SECRET, now=NOW)
    forged = encode_state("user-2", "", SECRET, now=NOW)
    mixed = forged.split(".")[0] + "." + state.split(".")[1]
    with pytest.raises(InvalidOAuthState):
        decode_state(mixed, SECRET, now=NOW)


def test_expired_state_rejected():
    state = encode_state("user-1", "", SECRET, now=NOW)
    with pytest.raises(InvalidOAuthState):
        decode_state(state, SECRET, ttl_seconds=600, now=NOW + 601)


def test_state_from_the_future_rejected():
    state = encode_state("user-1", "", SECRET, now=NOW + 3600)
    with pytest.raises(InvalidOAuthState):
        decode_state(state, SECRET, now=NOW)


@pytest.mark.parametrize("state", [None, "", "garbage", "a.b.c", "payload.sig", "é.ü"])
def test_malformed_state_rejected(state):
    with pytest.raises(InvalidOAuthState):
        decode_state(state, SECRET, now=NOW)


def test_encode_requires_user():
    with pytest.raises(InvalidOAuthState):
        encode_state("", "", SECRET)
