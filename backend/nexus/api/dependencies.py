"""API Dependencies — authentication and service wiring for route handlers.

Invariants:
    - get_current_user resolves the bearer credential before any user-scoped
      dependency runs: a rejected request performs no ledger read and no
      provider call
    - Missing/non-Bearer Authorization → Unauthenticated (401);
      rejected credential → InvalidCredential (401)
    - Services are built per request from injected Settings, session and the
      shared outbound client (no module-level service singletons)

Design Decisions:
    - HTTPBearer(auto_error=False): the scheme still shows in OpenAPI, but the
      401 body comes from our own error hierarchy
"""

from typing import Annotated

import httpx
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from nexus.config import Settings, get_settings
from nexus.core.domain_types import Provider, UserId
from nexus.core.errors import Unauthenticated
from nexus.infrastructure.database import get_db
from nexus.infrastructure.http_client import ProviderHttpClient, get_http_client
from nexus.infrastructure.identity_client import IdentityClient
from nexus.infrastructure.providers import build_oauth_adapters
from nexus.infrastructure.providers.porkbun import PROVIDER as PORKBUN, PorkbunRegistrar
from nexus.infrastructure.providers.stripe import PROVIDER as STRIPE, StripeClient
from nexus.infrastructure.providers.whatsapp import PROVIDER as WHATSAPP, WhatsAppClient
from nexus.infrastructure.repositories import (
    SqlConnectionRepository, SqlDomainRegistrationRepository, SqlLedgerRepository,
)
from nexus.services.analytics_reader import AnalyticsReader
from nexus.services.campaign_aggregator import CampaignAggregator
from nexus.services.domain_registrar import DomainRegistrar
from nexus.services.oauth_connector import OAuthConnector
from nexus.services.wallet_ledger import WalletLedger
from nexus.services.wallet_topup import WalletTopup
from nexus.services.webhook_subscriber import WebhookSubscriber

bearer_scheme = HTTPBearer(auto_error=False)

SettingsDep = Annotated[Settings, Depends(get_settings)]
HttpDep = Annotated[httpx.AsyncClient, Depends(get_http_client)]
DbDep = Annotated[AsyncSession, Depends(get_db)]


def get_identity_client(client: HttpDep, settings: SettingsDep) -> IdentityClient:
    return IdentityClient(client, settings)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    identity: Annotated[IdentityClient, Depends(get_identity_client)],
) -> UserId:
    """Resolve the caller's user id from the Authorization header."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthenticated()
    return await identity.verify(credentials.credentials)


CurrentUser = Annotated[UserId, Depends(get_current_user)]


# ─── Service factories ──────────────────────────────────────────

def get_wallet_ledger(db: DbDep, settings: SettingsDep) -> WalletLedger:
    return WalletLedger(SqlLedgerRepository(db), settings)


def get_oauth_connector(
    db: DbDep, client: HttpDep, settings: SettingsDep,
) -> OAuthConnector:
    return OAuthConnector(
        build_oauth_adapters(client, settings),
        SqlConnectionRepository(db),
        settings,
    )


def get_domain_registrar(
    db: DbDep, client: HttpDep, settings: SettingsDep,
) -> DomainRegistrar:
    http = ProviderHttpClient.from_settings(
        PORKBUN, client, settings,
        secrets=[settings.porkbun_api_key, settings.porkbun_secret_key],
    )
    return DomainRegistrar(
        PorkbunRegistrar(http, settings),
        WalletLedger(SqlLedgerRepository(db), settings),
        SqlDomainRegistrationRepository(db),
        settings,
    )


def get_campaign_aggregator(
    db: DbDep, client: HttpDep, settings: SettingsDep,
) -> CampaignAggregator:
    adapters = build_oauth_adapters(client, settings)
    return CampaignAggregator(
        SqlConnectionRepository(db),
        adapters[Provider.META_ADS],
        adapters[Provider.GOOGLE_ADS],
    )


def get_analytics_reader(
    db: DbDep, client: HttpDep, settings: SettingsDep,
) -> AnalyticsReader:
    adapters = build_oauth_adapters(client, settings)
    return AnalyticsReader(
        SqlConnectionRepository(db), adapters[Provider.GOOGLE_ANALYTICS],
    )


def get_webhook_subscriber(client: HttpDep, settings: SettingsDep) -> WebhookSubscriber:
    http = ProviderHttpClient.from_settings(
        WHATSAPP, client, settings, secrets=[settings.whatsapp_access_token],
    )
    return WebhookSubscriber(WhatsAppClient(http, settings), settings)


def get_wallet_topup(
    db: DbDep, client: HttpDep, settings: SettingsDep,
) -> WalletTopup:
    http = ProviderHttpClient.from_settings(
        STRIPE, client, settings, secrets=[settings.stripe_secret_key],
    )
    return WalletTopup(
        StripeClient(http, settings),
        WalletLedger(SqlLedgerRepository(db), settings),
        settings,
    )
