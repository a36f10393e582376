"""Third-Party Adapters — one module per external API, registered explicitly.

Invariants:
    - Every adapter talks through a ProviderHttpClient (timeouts, retry policy,
      secret scrubbing) built from the shared AsyncClient
    - OAuth adapters are keyed by Provider in an explicit dict (no discovery)
"""

import httpx

from nexus.config import Settings
from nexus.core.domain_types import Provider
from nexus.infrastructure.http_client import ProviderHttpClient
from nexus.infrastructure.providers.base import OAuthAdapter
from nexus.infrastructure.providers.google import (
    GoogleAdsAdapter, GoogleAnalyticsAdapter,
)
from nexus.infrastructure.providers.meta import MetaAdsAdapter


def build_oauth_adapters(
    client: httpx.AsyncClient, settings: Settings,
) -> dict[Provider, OAuthAdapter]:
    meta_http = ProviderHttpClient.from_settings(
        Provider.META_ADS.value, client, settings, secrets=[settings.meta_app_secret],
    )
    ads_http = ProviderHttpClient.from_settings(
        Provider.GOOGLE_ADS.value, client, settings,
        secrets=[settings.google_client_secret, settings.google_ads_developer_token],
    )
    analytics_http = ProviderHttpClient.from_settings(
        Provider.GOOGLE_ANALYTICS.value, client, settings,
        secrets=[settings.google_client_secret],
    )
    return {
        Provider.META_ADS: MetaAdsAdapter(meta_http, settings),
        Provider.GOOGLE_ADS: GoogleAdsAdapter(ads_http, settings),
        Provider.GOOGLE_ANALYTICS: GoogleAnalyticsAdapter(analytics_http, settings),
    }
