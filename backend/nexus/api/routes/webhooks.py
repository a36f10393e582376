"""Webhook Routes — WhatsApp subscription handshake and inbound provider callbacks.

Invariants:
    - POST /whatsapp/subscribe requires a verified bearer credential
    - GET /whatsapp echoes hub.challenge as text/plain or answers 403
    - Inbound POST bodies are read raw: signatures cover the exact bytes received
    - Stripe deliveries are acknowledged with 200 once verified, whatever the event type
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query, Request, status
from fastapi.responses import PlainTextResponse

from nexus.api.dependencies import (
    CurrentUser, get_wallet_topup, get_webhook_subscriber,
)
from nexus.schemas.oauth import SubscriptionResponse
from nexus.services.wallet_topup import WalletTopup
from nexus.services.webhook_subscriber import WebhookSubscriber

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])

SubscriberDep = Annotated[WebhookSubscriber, Depends(get_webhook_subscriber)]


@router.post("/whatsapp/subscribe", response_model=SubscriptionResponse)
async def subscribe_whatsapp(user_id: CurrentUser, subscriber: SubscriberDep):
    """Subscribe the app to the business account and verify by re-reading."""
    report = await subscriber.ensure_subscribed()
    logger.info(
        f"WhatsApp subscription verified={report.success}",
        extra={"user_id": user_id, "provider": "whatsapp"},
    )
    return report.to_dict()


@router.get("/whatsapp", response_class=PlainTextResponse)
async def whatsapp_handshake(
    subscriber: SubscriberDep,
    mode: str | None = Query(None, alias="hub.mode"),
    token: str | None = Query(None, alias="hub.verify_token"),
    challenge: str | None = Query(None, alias="hub.challenge"),
):
    echoed = subscriber.verify_handshake(mode, token, challenge)
    if echoed is None:
        logger.warning("WhatsApp handshake rejected", extra={"provider": "whatsapp"})
        return PlainTextResponse("Forbidden", status_code=status.HTTP_403_FORBIDDEN)
    return PlainTextResponse(echoed)


@router.post("/whatsapp")
async def whatsapp_delivery(
    request: Request,
    subscriber: SubscriberDep,
    signature: str | None = Header(None, alias="X-Hub-Signature-256"),
):
    """Acknowledge a delivery; message processing happens elsewhere."""
    payload = await request.body()
    subscriber.verify_delivery(payload, signature)
    return {"status": "received"}


@router.post("/stripe")
async def stripe_event(
    request: Request,
    topup: Annotated[WalletTopup, Depends(get_wallet_topup)],
    signature: str | None = Header(None, alias="Stripe-Signature"),
):
    payload = await request.body()
    outcome = await topup.handle_event(payload, signature)
    return {
        "received": True,
        "type": outcome.event_type,
        "credited": outcome.credited,
        "duplicate": outcome.duplicate,
    }
