"""Stripe Adapter — hosted checkout sessions for wallet top-ups.

Invariants:
    - Amounts are sent in minor units (cents), computed from Decimal
    - Session creation is never retried (each POST would open a new session)
    - Metadata always carries user_id, type=wallet_topup and the amount, so the
      webhook can credit without a second lookup
    - The secret key travels only in the Authorization header
"""

from decimal import Decimal

from nexus.config import Settings
from nexus.core.errors import ConfigurationError
from nexus.infrastructure.http_client import ProviderHttpClient
from nexus.schemas.provider_responses import StripeCheckoutSession, parse_provider

PROVIDER = "stripe"
TOPUP_TYPE = "wallet_topup"


def checkout_form(
    user_id: str,
    amount: Decimal,
    currency: str,
    success_url: str,
    cancel_url: str,
) -> dict:
    """Flattened form fields in Stripe's bracket notation."""
    cents = int(amount * 100)
    return {
        "mode": "payment",
        "payment_method_types[0]": "card",
        "client_reference_id": user_id,
        "line_items[0][quantity]": "1",
        "line_items[0][price_data][currency]": currency,
        "line_items[0][price_data][unit_amount]": str(cents),
        "line_items[0][price_data][product_data][name]": "Nexus Wallet top-up",
        "line_items[0][price_data][product_data][description]": (
            f"Wallet top-up of {amount} {currency.upper()}"
        ),
        "metadata[user_id]": user_id,
        "metadata[type]": TOPUP_TYPE,
        "metadata[amount]": str(amount),
        "success_url": success_url,
        "cancel_url": cancel_url,
    }


class StripeClient:
    def __init__(self, http: ProviderHttpClient, settings: Settings):
        self.http = http
        self.secret_key = settings.stripe_secret_key
        self.api_base = settings.stripe_api_base.rstrip("/")
        self.currency = settings.wallet_currency

    async def create_checkout_session(
        self, user_id: str, amount: Decimal, success_url: str, cancel_url: str,
    ) -> StripeCheckoutSession:
        if not self.secret_key:
            raise ConfigurationError("stripe_secret_key")
        body = await self.http.post_json(
            f"{self.api_base}/checkout/sessions",
            data=checkout_form(user_id, amount, self.currency, success_url, cancel_url),
            headers={"Authorization": f"Bearer {self.secret_key}"},
        )
        return parse_provider(StripeCheckoutSession, body, PROVIDER)
