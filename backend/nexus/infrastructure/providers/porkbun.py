"""Porkbun Registrar Adapter — availability probes and registration (live or simulated).

Invariants:
    - check_availability returns True only for an explicit "yes" under status SUCCESS
    - Registration is never retried (a duplicate create could double-charge the
      registrar account)
    - Simulated mode makes no outbound call and returns reference "mock-<epoch ms>"
    - API keys travel in the JSON body and are scrubbed from surfaced errors

Design Decisions:
    - Mode chosen by settings.registrar_mode ("mock" | "live"), not by the
      presence of keys: a missing key in live mode is a ConfigurationError
"""

import logging
import time
from dataclasses import dataclass, field

from nexus.config import Settings
from nexus.core.errors import ConfigurationError, UpstreamProviderError
from nexus.core.money import to_money
from nexus.infrastructure.http_client import ProviderHttpClient
from nexus.schemas.provider_responses import (
    PorkbunAvailability, PorkbunRegistration, parse_provider,
)

logger = logging.getLogger(__name__)

PROVIDER = "porkbun"
MODE_MOCK = "mock"
MODE_LIVE = "live"


@dataclass(frozen=True)
class RegistrarReceipt:
    reference: str
    nameservers: list[str] = field(default_factory=list)
    simulated: bool = False


class PorkbunRegistrar:
    def __init__(self, http: ProviderHttpClient, settings: Settings):
        self.http = http
        self.base_url = settings.porkbun_base_url.rstrip("/")
        self.api_key = settings.porkbun_api_key
        self.secret_key = settings.porkbun_secret_key
        self.mode = settings.registrar_mode
        self.nameservers = list(settings.registrar_nameservers)

    @property
    def simulated(self) -> bool:
        return self.mode != MODE_LIVE

    def _credentials(self) -> dict:
        if not self.api_key or not self.secret_key:
            raise ConfigurationError("porkbun_api_key/porkbun_secret_key")
        return {"apikey": self.api_key, "secretapikey": self.secret_key}

    async def check_availability(self, domain: str) -> bool:
        body = await self.http.post_json(
            f"{self.base_url}/domain/checkDomain/{domain}",
            json=self._credentials(),
        )
        return parse_provider(PorkbunAvailability, body, PROVIDER).available

    async def register(self, domain: str, cost_price) -> RegistrarReceipt:
        if self.simulated:
            logger.info(
                "Simulated registrar order", extra={"domain": domain},
            )
            return RegistrarReceipt(
                reference=f"mock-{int(time.time() * 1000)}",
                nameservers=list(self.nameservers),
                simulated=True,
            )

        payload = {
            **self._credentials(),
            # registrar expects the agreed cost in minor units
            "cost": int(to_money(cost_price) * 100),
            "agreeToTerms": "yes",
        }
        body = await self.http.post_json(
            f"{self.base_url}/domain/create/{domain}", json=payload,
        )
        order = parse_provider(PorkbunRegistration, body, PROVIDER)
        if order.status != "SUCCESS":
            raise UpstreamProviderError(
                PROVIDER, order.message or "registration rejected", transient=False,
            )
        return RegistrarReceipt(
            reference=str(order.orderId or domain),
            nameservers=list(self.nameservers),
        )
