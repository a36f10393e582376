"""Webhook Subscriber — idempotent app subscription on the WhatsApp Business Account.

Invariants:
    - Sequence is always read → subscribe → re-read
    - success derives ONLY from the re-read (non-empty subscription list), never
      from the subscribe call's own flag
    - A subscribe error is reported with the provider's message, not raised
    - The inbound handshake echoes the challenge only for mode=subscribe with a
      matching verify token
"""

import hmac
import logging
from dataclasses import dataclass, field

from nexus.config import Settings
from nexus.core.errors import UpstreamProviderError
from nexus.core.webhook_signatures import verify_meta_signature
from nexus.infrastructure.providers.whatsapp import WhatsAppClient

logger = logging.getLogger(__name__)

MSG_SUBSCRIBED = "Webhook subscribed to the 'messages' field."
MSG_NOT_VERIFIED = "Subscription could not be verified."


@dataclass(frozen=True)
class SubscriptionReport:
    success: bool
    message: str
    current_subscriptions: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "current_subscriptions": self.current_subscriptions,
        }


class WebhookSubscriber:
    def __init__(self, client: WhatsAppClient, settings: Settings):
        self.client = client
        self.verify_token = settings.whatsapp_verify_token
        self.app_secret = settings.whatsapp_app_secret

    async def ensure_subscribed(self) -> SubscriptionReport:
        try:
            before = await self.client.list_subscribed_apps()
            logger.info(
                f"WhatsApp subscriptions before: {len(before)}",
                extra={"provider": "whatsapp"},
            )
        except UpstreamProviderError as e:
            logger.warning(
                f"Could not read current subscriptions: {e.provider_message}",
                extra={"provider": "whatsapp"},
            )

        try:
            acknowledged = await self.client.subscribe_app()
        except UpstreamProviderError as e:
            logger.error(
                f"Subscribe call failed: {e.provider_message}",
                extra={"provider": "whatsapp", "status_code": e.status_code},
            )
            return SubscriptionReport(success=False, message=e.provider_message)
        if not acknowledged:
            logger.warning(
                "Subscribe call returned success=false, verifying anyway",
                extra={"provider": "whatsapp"},
            )

        try:
            after = await self.client.list_subscribed_apps()
        except UpstreamProviderError as e:
            return SubscriptionReport(
                success=False, message=f"{MSG_NOT_VERIFIED} {e.provider_message}",
            )
        verified = len(after) > 0
        return SubscriptionReport(
            success=verified,
            message=MSG_SUBSCRIBED if verified else MSG_NOT_VERIFIED,
            current_subscriptions=after,
        )

    def verify_handshake(
        self, mode: str | None, token: str | None, challenge: str | None,
    ) -> str | None:
        """Return the challenge to echo, or None to reject (403)."""
        if mode != "subscribe" or not token or challenge is None:
            return None
        if not hmac.compare_digest(token.encode("utf-8"), self.verify_token.encode("utf-8")):
            return None
        return challenge

    def verify_delivery(self, payload: bytes, signature: str | None) -> None:
        """Check X-Hub-Signature-256 when an app secret is configured."""
        if self.app_secret:
            verify_meta_signature(payload, signature, self.app_secret)
