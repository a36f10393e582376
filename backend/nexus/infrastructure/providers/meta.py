"""Meta Graph Adapter — Facebook login, long-lived token upgrade, ad accounts and campaigns.

Invariants:
    - Graph API version pinned by settings (meta_graph_version), never per call
    - Code exchange is a single non-retried GET
    - Campaign insights cover a fixed last_30d window
    - Campaign listing follows paging.next up to MAX_CAMPAIGN_PAGES pages of
      CAMPAIGN_PAGE_SIZE; anything beyond is dropped with a warning
    - App secret and access tokens are scrubbed from every surfaced message
"""

import logging
from urllib.parse import urlencode

from nexus.config import Settings
from nexus.core.domain_types import Provider
from nexus.infrastructure.http_client import ProviderHttpClient
from nexus.infrastructure.providers.base import ResourceCandidate, TokenGrant
from nexus.schemas.provider_responses import (
    MetaAdAccountList, MetaCampaign, MetaCampaignList, MetaToken, parse_provider,
)

logger = logging.getLogger(__name__)

META_SCOPES = (
    "ads_management",
    "ads_read",
    "pages_manage_posts",
    "pages_read_engagement",
    "instagram_basic",
    "instagram_content_publish",
    "business_management",
)

CAMPAIGN_FIELDS = (
    "id,name,status,objective,daily_budget,lifetime_budget,start_time,stop_time,"
    "insights.date_preset(last_30d){impressions,clicks,spend,ctr,cpc}"
)
CAMPAIGN_PAGE_SIZE = 100
MAX_CAMPAIGN_PAGES = 10


def graph_base_url(settings: Settings) -> str:
    return f"https://graph.facebook.com/{settings.meta_graph_version}"


class MetaAdsAdapter:
    """OAuth + Marketing API access for Meta Ads."""

    provider = Provider.META_ADS
    requires_refresh_token = False

    def __init__(self, http: ProviderHttpClient, settings: Settings):
        self.http = http
        self.app_id = settings.meta_app_id
        self.app_secret = settings.meta_app_secret
        self.graph_url = graph_base_url(settings)
        self.dialog_url = (
            f"https://www.facebook.com/{settings.meta_graph_version}/dialog/oauth"
        )
        self.secrets = (self.app_secret,)

    def authorize_url(self, redirect_uri: str, state: str) -> str:
        params = {
            "client_id": self.app_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": ",".join(META_SCOPES),
            "state": state,
        }
        return f"{self.dialog_url}?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: str) -> TokenGrant:
        body = await self.http.get_json(
            f"{self.graph_url}/oauth/access_token",
            params={
                "client_id": self.app_id,
                "redirect_uri": redirect_uri,
                "client_secret": self.app_secret,
                "code": code,
            },
            retry=False,
        )
        token = parse_provider(MetaToken, body, self.provider.value)
        return TokenGrant(access_token=token.access_token, expires_in=token.expires_in)

    async def upgrade(self, grant: TokenGrant) -> TokenGrant:
        """Swap the short-lived user token for a long-lived one (~60 days)."""
        body = await self.http.get_json(
            f"{self.graph_url}/oauth/access_token",
            params={
                "grant_type": "fb_exchange_token",
                "client_id": self.app_id,
                "client_secret": self.app_secret,
                "fb_exchange_token": grant.access_token,
            },
        )
        token = parse_provider(MetaToken, body, self.provider.value)
        return grant.with_access_token(token.access_token, token.expires_in)

    async def account_email(self, grant: TokenGrant) -> str | None:
        return None

    async def discover_resources(self, grant: TokenGrant) -> list[ResourceCandidate]:
        body = await self.http.get_json(
            f"{self.graph_url}/me/adaccounts",
            params={
                "fields": "id,name,account_status",
                "access_token": grant.access_token,
            },
        )
        accounts = parse_provider(MetaAdAccountList, body, self.provider.value)
        return [
            ResourceCandidate(id=a.id, name=a.name or a.id, status=a.account_status)
            for a in accounts.data
        ]

    async def list_campaigns(self, ad_account_id: str, access_token: str) -> list[MetaCampaign]:
        body = await self.http.get_json(
            f"{self.graph_url}/{ad_account_id}/campaigns",
            params={
                "fields": CAMPAIGN_FIELDS,
                "limit": CAMPAIGN_PAGE_SIZE,
                "access_token": access_token,
            },
        )
        page = parse_provider(MetaCampaignList, body, self.provider.value)
        campaigns = list(page.data)
        for _ in range(MAX_CAMPAIGN_PAGES - 1):
            if not (page.paging and page.paging.next):
                return campaigns
            # next already carries fields, cursor and token
            body = await self.http.get_json(page.paging.next)
            page = parse_provider(MetaCampaignList, body, self.provider.value)
            campaigns.extend(page.data)
        if page.paging and page.paging.next:
            logger.warning(
                f"Campaign list truncated at {len(campaigns)} campaigns",
                extra={"provider": self.provider.value},
            )
        return campaigns
