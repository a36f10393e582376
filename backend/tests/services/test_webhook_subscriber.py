"""Webhook Subscriber — verifies read → subscribe → re-read and the inbound handshake.

Invariants:
    - success comes from the re-read list, never from the subscribe flag
    - Subscribe error → success False with the provider's message (HTTP 200)
    - Handshake echoes hub.challenge only for mode=subscribe + matching token
    - Signed deliveries are checked when an app secret is configured
"""

import hashlib
import hmac

import httpx
import pytest

from nexus.core.errors import WebhookSignatureError
from nexus.infrastructure.http_client import ProviderHttpClient
from nexus.infrastructure.providers.whatsapp import WhatsAppClient
from nexus.services.webhook_subscriber import WebhookSubscriber

from tests.services.mock_providers import auth_header, make_settings

SUBSCRIBED_APPS = "https://graph.facebook.com/v21.0/waba-123/subscribed_apps"


def _subscriptions_after_post(apps_after: list[dict]):
    """GET answers [] until the POST happened, then apps_after."""
    state = {"posted": False}

    def handler(request):
        if request.method == "POST":
            state["posted"] = True
            return httpx.Response(200, json={"success": True})
        return httpx.Response(200, json={"data": apps_after if state["posted"] else []})

    return handler


async def test_subscribe_verified_by_reread(client, router):
    apps = [{"whatsapp_business_api_data": {"id": "app-1", "name": "Nexus"}}]
    handler = _subscriptions_after_post(apps)
    router.add("GET", SUBSCRIBED_APPS, handler)
    router.add("POST", SUBSCRIBED_APPS, handler)

    res = await client.post("/api/v1/webhooks/whatsapp/subscribe", headers=auth_header())

    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["current_subscriptions"] == apps
    assert [r.method for r in router.calls_to("subscribed_apps")] == ["GET", "POST", "GET"]


async def test_subscribe_flag_alone_is_not_success(client, router):
    router.add("GET", SUBSCRIBED_APPS, json={"data": []})
    router.add("POST", SUBSCRIBED_APPS, json={"success": True})

    res = await client.post("/api/v1/webhooks/whatsapp/subscribe", headers=auth_header())

    assert res.status_code == 200
    assert res.json()["success"] is False
    assert res.json()["current_subscriptions"] == []


async def test_subscribe_error_reports_provider_message(client, router):
    router.add("GET", SUBSCRIBED_APPS, json={"data": []})
    router.add("POST", SUBSCRIBED_APPS, status=400, json={
        "error": {"message": "(#100) Invalid parameter", "type": "OAuthException"},
    })

    res = await client.post("/api/v1/webhooks/whatsapp/subscribe", headers=auth_header())

    assert res.status_code == 200
    assert res.json() == {
        "success": False,
        "message": "(#100) Invalid parameter",
        "current_subscriptions": [],
    }


async def test_subscribe_before_read_failure_is_not_fatal(client, router):
    state = {"gets": 0}

    def flaky_reads(request):
        state["gets"] += 1
        if state["gets"] == 1:
            return httpx.Response(400, json={"error": {"message": "read failed"}})
        return httpx.Response(200, json={"data": [{"id": "app-1"}]})

    router.add("GET", SUBSCRIBED_APPS, flaky_reads)
    router.add("POST", SUBSCRIBED_APPS, json={"success": True})

    res = await client.post("/api/v1/webhooks/whatsapp/subscribe", headers=auth_header())

    assert res.json()["success"] is True
    assert res.json()["current_subscriptions"] == [{"id": "app-1"}]


async def test_subscribe_requires_auth(client, router):
    res = await client.post("/api/v1/webhooks/whatsapp/subscribe")
    assert res.status_code == 401
    assert router.calls_to("subscribed_apps") == []


# -- Handshake -----------------------------------------------------------------


async def test_handshake_echoes_challenge(client):
    res = await client.get("/api/v1/webhooks/whatsapp", params={
        "hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "1158201444",
    })
    assert res.status_code == 200
    assert res.text == "1158201444"
    assert res.headers["content-type"].startswith("text/plain")


@pytest.mark.parametrize("params", [
    {"hub.mode": "subscribe", "hub.verify_token": "wrong", "hub.challenge": "1"},
    {"hub.mode": "unsubscribe", "hub.verify_token": "verify-me", "hub.challenge": "1"},
    {"hub.mode": "subscribe", "hub.challenge": "1"},
    {"hub.mode": "subscribe", "hub.verify_token": "vérify", "hub.challenge": "1"},
])
async def test_handshake_rejected(client, params):
    res = await client.get("/api/v1/webhooks/whatsapp", params=params)
    assert res.status_code == 403


# -- Delivery signatures -------------------------------------------------------


def _subscriber(http_client, **overrides) -> WebhookSubscriber:
    settings = make_settings(**overrides)
    http = ProviderHttpClient.from_settings("whatsapp", http_client, settings)
    return WebhookSubscriber(WhatsAppClient(http, settings), settings)


async def test_delivery_unchecked_without_app_secret(http_client):
    _subscriber(http_client).verify_delivery(b"{}", None)


async def test_delivery_signature_checked_with_app_secret(http_client):
    subscriber = _subscriber(http_client, whatsapp_app_secret="app-secret")
    payload = b'{"entry":[]}'
    digest = hmac.new(b"app-secret", payload, hashlib.sha256).hexdigest()
    subscriber.verify_delivery(payload, f"sha256={digest}")
    with pytest.raises(WebhookSignatureError):
        subscriber.verify_delivery(payload, "sha256=0000")


async def test_delivery_route_acknowledges(client):
    res = await client.post("/api/v1/webhooks/whatsapp", content=b'{"entry":[]}')
    assert res.status_code == 200
    assert res.json() == {"status": "received"}
