"""Wallet Top-up — checkout session creation and the signed payment webhook.

Invariants:
    - Minimum top-up is settings.wallet_min_topup (1.00 by default)
    - handle_event verifies Stripe-Signature before reading the payload
    - A completed wallet_topup session credits exactly one deposit with
      reference_id = session id; redeliveries are no-ops, including concurrent
      ones (the ledger's unique deposit reference decides the loser)
    - Other event types are acknowledged and ignored
"""

import json
import logging
from dataclasses import dataclass
from decimal import Decimal

from nexus.config import Settings
from nexus.core.domain_types import LedgerKind, UserId
from nexus.core.errors import (
    ConfigurationError, DuplicateLedgerReference, MalformedInput,
)
from nexus.core.ledger_rules import require_positive
from nexus.core.oauth_redirects import normalize_origin
from nexus.core.webhook_signatures import verify_stripe_signature
from nexus.infrastructure.providers.stripe import PROVIDER, TOPUP_TYPE, StripeClient
from nexus.schemas.provider_responses import StripeEvent, parse_provider
from nexus.services.wallet_ledger import WalletLedger

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


@dataclass(frozen=True)
class CheckoutLink:
    url: str | None
    session_id: str


@dataclass(frozen=True)
class EventOutcome:
    event_type: str
    credited: bool
    duplicate: bool = False


class WalletTopup:
    def __init__(self, stripe: StripeClient, ledger: WalletLedger, settings: Settings):
        self.stripe = stripe
        self.ledger = ledger
        self.webhook_secret = settings.stripe_webhook_secret
        self.tolerance = settings.stripe_signature_tolerance_seconds
        self.minimum = settings.wallet_min_topup
        self.fallback_origin = settings.oauth_fallback_origin

    async def create_checkout(
        self,
        user_id: UserId,
        amount: Decimal | float | str,
        success_url: str | None = None,
        cancel_url: str | None = None,
        origin: str | None = None,
    ) -> CheckoutLink:
        value = require_positive(amount)
        if value < self.minimum:
            raise MalformedInput(f"Minimum top-up is {self.minimum}", "amount")
        base = normalize_origin(origin) or normalize_origin(self.fallback_origin)
        session = await self.stripe.create_checkout_session(
            user_id,
            value,
            success_url or f"{base}/domains?topup=success",
            cancel_url or f"{base}/domains?topup=cancel",
        )
        logger.info(
            "Checkout session created",
            extra={"user_id": user_id, "amount": value, "reference_id": session.id},
        )
        return CheckoutLink(url=session.url, session_id=session.id)

    async def handle_event(self, payload: bytes, signature_header: str | None) -> EventOutcome:
        if not self.webhook_secret:
            raise ConfigurationError("stripe_webhook_secret")
        verify_stripe_signature(
            payload, signature_header, self.webhook_secret,
            tolerance_seconds=self.tolerance,
        )
        try:
            body = json.loads(payload)
        except ValueError:
            raise MalformedInput("Webhook payload is not JSON", "body")
        event = parse_provider(StripeEvent, body, PROVIDER)
        logger.info(f"Processing payment event {event.type}", extra={"reference_id": event.id})

        if event.type != CHECKOUT_COMPLETED:
            return EventOutcome(event.type, credited=False)

        session = event.data.object
        metadata = session.get("metadata") or {}
        user_id = metadata.get("user_id")
        session_id = session.get("id")
        if metadata.get("type") != TOPUP_TYPE or not user_id or not session_id:
            return EventOutcome(event.type, credited=False)

        try:
            amount = require_positive(metadata.get("amount") or "0")
        except MalformedInput:
            logger.error(
                "Top-up session without a usable amount",
                extra={"user_id": user_id, "reference_id": session_id},
            )
            return EventOutcome(event.type, credited=False)

        existing = await self.ledger.find_entry(
            UserId(user_id), LedgerKind.DEPOSIT, session_id,
        )
        if existing is not None:
            return self._duplicate(event.type, user_id, session_id)

        try:
            await self.ledger.credit(
                UserId(user_id),
                amount,
                LedgerKind.DEPOSIT,
                "Wallet top-up via Stripe",
                session_id,
            )
        except DuplicateLedgerReference:
            return self._duplicate(event.type, user_id, session_id)
        return EventOutcome(event.type, credited=True)

    def _duplicate(self, event_type: str, user_id: str, session_id: str) -> EventOutcome:
        logger.info(
            "Duplicate top-up delivery ignored",
            extra={"user_id": user_id, "reference_id": session_id},
        )
        return EventOutcome(event_type, credited=False, duplicate=True)
