"""WhatsApp Cloud API Adapter — app subscriptions on the WhatsApp Business Account.

Invariants:
    - Reads are retryable; the subscribe POST is not (the service re-reads instead)
    - The system-user access token is passed as a parameter and scrubbed from errors
"""

from nexus.config import Settings
from nexus.core.errors import ConfigurationError
from nexus.infrastructure.http_client import ProviderHttpClient
from nexus.infrastructure.providers.meta import graph_base_url
from nexus.schemas.provider_responses import (
    GraphSubscribedApps, GraphSuccess, parse_provider,
)

PROVIDER = "whatsapp"


class WhatsAppClient:
    def __init__(self, http: ProviderHttpClient, settings: Settings):
        self.http = http
        self.access_token = settings.whatsapp_access_token
        self.waba_id = settings.whatsapp_business_account_id
        self.graph_url = graph_base_url(settings)

    def _endpoint(self) -> str:
        if not self.waba_id:
            raise ConfigurationError("whatsapp_business_account_id")
        if not self.access_token:
            raise ConfigurationError("whatsapp_access_token")
        return f"{self.graph_url}/{self.waba_id}/subscribed_apps"

    async def list_subscribed_apps(self) -> list[dict]:
        body = await self.http.get_json(
            self._endpoint(), params={"access_token": self.access_token},
        )
        return parse_provider(GraphSubscribedApps, body, PROVIDER).data

    async def subscribe_app(self) -> bool:
        """POST subscribed_apps; returns the provider's own success flag."""
        body = await self.http.post_json(
            self._endpoint(), json={"access_token": self.access_token},
        )
        return parse_provider(GraphSuccess, body, PROVIDER).success
