"""Wallet Top-up — verifies checkout creation, the signed webhook and idempotent credit.

Invariants:
    - Amount below the minimum → 400, no Stripe call
    - A verified checkout.session.completed (type wallet_topup) credits exactly once
    - Redelivery of the same session is acknowledged without a second credit,
      also when both deliveries are processed at the same time
    - Bad signature → 400, nothing credited
    - Other event types are acknowledged and ignored
"""

import asyncio
import json
import time
from decimal import Decimal

import pytest
from sqlalchemy import select

from nexus.core.domain_types import LedgerKind, UserId
from nexus.core.errors import DuplicateLedgerReference
from nexus.core.webhook_signatures import stripe_signature_header
from nexus.infrastructure.http_client import ProviderHttpClient
from nexus.infrastructure.providers.stripe import StripeClient
from nexus.infrastructure.repositories import SqlLedgerRepository
from nexus.models.ledger_entry import LedgerEntry
from nexus.services.wallet_ledger import WalletLedger
from nexus.services.wallet_topup import WalletTopup

from tests.services.mock_providers import USER_ID, auth_header, form_body

STRIPE_SESSIONS = "https://stripe.test/v1/checkout/sessions"
WEBHOOK_SECRET = "whsec_test"


def _event(session_id="cs_test_1", amount="25.00", event_type="checkout.session.completed",
           topup_type="wallet_topup", user_id=USER_ID) -> bytes:
    return json.dumps({
        "id": "evt_1",
        "type": event_type,
        "data": {"object": {
            "id": session_id,
            "object": "checkout.session",
            "payment_status": "paid",
            "metadata": {"user_id": user_id, "type": topup_type, "amount": amount},
        }},
    }).encode("utf-8")


def _signed(payload: bytes, secret: str = WEBHOOK_SECRET) -> dict:
    header = stripe_signature_header(payload, secret, int(time.time()))
    return {"Stripe-Signature": header, "Content-Type": "application/json"}


async def _deposits(test_db) -> list[LedgerEntry]:
    result = await test_db.execute(
        select(LedgerEntry).where(LedgerEntry.kind == "deposit"),
    )
    return list(result.scalars().all())


# -- Checkout ------------------------------------------------------------------


async def test_topup_creates_checkout_session(client, router):
    router.add("POST", STRIPE_SESSIONS, json={
        "id": "cs_test_1", "url": "https://checkout.stripe.com/c/pay/cs_test_1",
    })

    res = await client.post(
        "/api/v1/wallet/topup",
        json={"amount": 25},
        headers={**auth_header(), "Origin": "https://app.example.com"},
    )

    assert res.status_code == 200
    assert res.json() == {
        "url": "https://checkout.stripe.com/c/pay/cs_test_1", "session_id": "cs_test_1",
    }
    form = form_body(router.calls_to("checkout/sessions")[0])
    assert form["line_items[0][price_data][unit_amount]"] == "2500"
    assert form["metadata[user_id]"] == USER_ID
    assert form["success_url"] == "https://app.example.com/domains?topup=success"
    assert form["cancel_url"] == "https://app.example.com/domains?topup=cancel"


async def test_topup_below_minimum(client, router):
    res = await client.post(
        "/api/v1/wallet/topup", json={"amount": 0.5}, headers=auth_header(),
    )
    assert res.status_code == 400
    assert router.calls_to("stripe.test") == []


async def test_topup_explicit_urls_win(client, router):
    router.add("POST", STRIPE_SESSIONS, json={"id": "cs_2", "url": None})
    res = await client.post(
        "/api/v1/wallet/topup",
        json={"amount": "10.00", "successUrl": "https://x.test/ok", "cancelUrl": "https://x.test/no"},
        headers=auth_header(),
    )
    assert res.status_code == 200
    form = form_body(router.calls_to("checkout/sessions")[0])
    assert form["success_url"] == "https://x.test/ok"


# -- Webhook -------------------------------------------------------------------


async def test_completed_session_credits_wallet(client, test_db):
    payload = _event()
    res = await client.post("/api/v1/webhooks/stripe", content=payload, headers=_signed(payload))

    assert res.status_code == 200
    assert res.json()["credited"] is True
    [deposit] = await _deposits(test_db)
    assert deposit.user_id == USER_ID
    assert deposit.amount == Decimal("25.00")
    assert deposit.reference_id == "cs_test_1"

    balance = await client.get("/api/v1/wallet/balance", headers=auth_header())
    assert balance.json() == {"balance": 25.0, "currency": "EUR"}


async def test_redelivery_is_idempotent(client, test_db):
    payload = _event()
    await client.post("/api/v1/webhooks/stripe", content=payload, headers=_signed(payload))
    res = await client.post("/api/v1/webhooks/stripe", content=payload, headers=_signed(payload))

    assert res.status_code == 200
    assert res.json()["duplicate"] is True
    assert len(await _deposits(test_db)) == 1


async def test_bad_signature_rejected(client, test_db):
    payload = _event()
    res = await client.post(
        "/api/v1/webhooks/stripe", content=payload, headers=_signed(payload, "whsec_wrong"),
    )
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "WEBHOOK_SIGNATURE_INVALID"
    assert await _deposits(test_db) == []


async def test_missing_signature_rejected(client):
    res = await client.post("/api/v1/webhooks/stripe", content=_event())
    assert res.status_code == 400


async def test_other_event_types_ignored(client, test_db):
    payload = _event(event_type="payment_intent.created")
    res = await client.post("/api/v1/webhooks/stripe", content=payload, headers=_signed(payload))
    assert res.status_code == 200
    assert res.json()["credited"] is False
    assert await _deposits(test_db) == []


async def test_non_topup_checkout_ignored(client, test_db):
    payload = _event(topup_type="subscription")
    res = await client.post("/api/v1/webhooks/stripe", content=payload, headers=_signed(payload))
    assert res.json()["credited"] is False
    assert await _deposits(test_db) == []


async def test_unusable_amount_acknowledged_without_credit(client, test_db):
    payload = _event(amount="-3")
    res = await client.post("/api/v1/webhooks/stripe", content=payload, headers=_signed(payload))
    assert res.status_code == 200
    assert res.json()["credited"] is False
    assert await _deposits(test_db) == []


async def test_webhook_without_secret_is_configuration_error(client, settings, test_db):
    settings.stripe_webhook_secret = ""
    payload = _event()
    res = await client.post("/api/v1/webhooks/stripe", content=payload, headers=_signed(payload))
    assert res.status_code == 500
    assert res.json()["error"]["code"] == "CONFIGURATION_ERROR"
    assert await _deposits(test_db) == []


async def test_topup_out_of_range_amount_is_400(client, router):
    res = await client.post(
        "/api/v1/wallet/topup", json={"amount": 1e30}, headers=auth_header(),
    )
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "MALFORMED_INPUT"
    assert router.calls_to("stripe.test") == []


# -- Concurrent deliveries -----------------------------------------------------


async def _deliver(session_factory, http_client, settings, payload: bytes):
    """One webhook delivery on its own session and connection."""
    async with session_factory() as session:
        http = ProviderHttpClient.from_settings("stripe", http_client, settings)
        topup = WalletTopup(
            StripeClient(http, settings),
            WalletLedger(SqlLedgerRepository(session), settings),
            settings,
        )
        return await topup.handle_event(payload, _signed(payload)["Stripe-Signature"])


@pytest.mark.parametrize("deliveries", [2, 4])
async def test_concurrent_redeliveries_credit_once(
    racing_session_factory, http_client, settings, deliveries,
):
    payload = _event(session_id="cs_1", amount="50.00")

    outcomes = await asyncio.gather(*(
        _deliver(racing_session_factory, http_client, settings, payload)
        for _ in range(deliveries)
    ))

    assert sum(o.credited for o in outcomes) == 1
    assert sum(o.duplicate for o in outcomes) == deliveries - 1
    async with racing_session_factory() as session:
        repo = SqlLedgerRepository(session)
        balance, _ = await repo.balance_and_sequence(UserId(USER_ID))
        entries = await repo.list_entries(UserId(USER_ID), 10, 0)
    assert balance == Decimal("50.00")
    assert [e.reference_id for e in entries] == ["cs_1"]


async def test_deposit_reference_is_unique_per_user(ledger_repo):
    user = UserId(USER_ID)
    await ledger_repo.append(user, 1, Decimal("50.00"), LedgerKind.DEPOSIT, "top-up", "cs_1")
    with pytest.raises(DuplicateLedgerReference):
        await ledger_repo.append(user, 2, Decimal("50.00"), LedgerKind.DEPOSIT, "top-up", "cs_1")
    # other kinds may share a reference (purchase, cashback, refund of one domain)
    await ledger_repo.append(user, 2, Decimal("15.00"), LedgerKind.CASHBACK, "cb", "cs_1")
    balance, last = await ledger_repo.balance_and_sequence(user)
    assert (balance, last) == (Decimal("65.00"), 2)
