"""Google Adapters — OAuth for Google Ads and Google Analytics, plus the Ads reporting reads.

Invariants:
    - Authorization always requests offline access with forced consent, so the
      first exchange returns a refresh token
    - A connection without a refresh token is unusable (requires_refresh_token)
    - Customer ids are sent without hyphens
    - Ads reporting covers the last 30 days (GAQL DURING LAST_30_DAYS); analytics
      reads take an explicit ISO date range
    - Report queries are read-only and therefore retried; token exchange is not

Design Decisions:
    - One base class for the shared token endpoint, one subclass per product
      for scopes and resource discovery
"""

from urllib.parse import quote, urlencode

from nexus.config import Settings
from nexus.core.analytics_metrics import GA4_METRICS
from nexus.core.campaign_metrics import INSIGHT_WINDOW_DAYS
from nexus.core.domain_types import Provider
from nexus.infrastructure.http_client import ProviderHttpClient
from nexus.infrastructure.providers.base import ResourceCandidate, TokenGrant
from nexus.schemas.provider_responses import (
    GA4Report, GoogleAccessibleCustomers, GoogleAccountSummaries, GoogleAdsRow,
    GoogleSearchStreamBatch, GoogleToken, GoogleUserInfo, SearchAnalyticsReport,
    SearchConsoleSites, parse_provider,
)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
ANALYTICS_ADMIN_URL = "https://analyticsadmin.googleapis.com/v1beta"
ANALYTICS_DATA_URL = "https://analyticsdata.googleapis.com/v1beta"
SEARCH_CONSOLE_URL = "https://www.googleapis.com/webmasters/v3"

ADS_SCOPES = ("https://www.googleapis.com/auth/adwords",)
ANALYTICS_SCOPES = (
    "https://www.googleapis.com/auth/analytics.readonly",
    "https://www.googleapis.com/auth/webmasters.readonly",
)
_IDENTITY_SCOPES = ("openid", "email")

CAMPAIGN_QUERY = f"""
    SELECT
      campaign.id,
      campaign.name,
      campaign.status,
      campaign.advertising_channel_type,
      campaign_budget.amount_micros,
      metrics.impressions,
      metrics.clicks,
      metrics.cost_micros,
      metrics.conversions
    FROM campaign
    WHERE segments.date DURING LAST_{INSIGHT_WINDOW_DAYS}_DAYS
    ORDER BY campaign.id
    LIMIT 50
"""


def format_customer_id(customer_id: str) -> str:
    """"1234567890" → "123-456-7890" (Ads UI format)."""
    digits = customer_id.replace("-", "")
    if len(digits) != 10:
        return customer_id
    return f"{digits[:3]}-{digits[3:6]}-{digits[6:]}"


class GoogleOAuthAdapter:
    """Shared Google OAuth2 authorization-code flow."""

    provider: Provider
    scopes: tuple[str, ...] = ()
    requires_refresh_token = True

    def __init__(self, http: ProviderHttpClient, settings: Settings):
        self.http = http
        self.client_id = settings.google_client_id
        self.client_secret = settings.google_client_secret
        self.secrets = (self.client_secret,)

    def authorize_url(self, redirect_uri: str, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes + _IDENTITY_SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: str) -> TokenGrant:
        body = await self.http.post_json(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            },
            retry=False,
        )
        token = parse_provider(GoogleToken, body, self.provider.value)
        return TokenGrant(
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            expires_in=token.expires_in,
        )

    async def refresh(self, refresh_token: str) -> TokenGrant:
        body = await self.http.post_json(
            GOOGLE_TOKEN_URL,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
            retry=True,
        )
        token = parse_provider(GoogleToken, body, self.provider.value)
        return TokenGrant(
            access_token=token.access_token,
            refresh_token=refresh_token,
            expires_in=token.expires_in,
        )

    async def upgrade(self, grant: TokenGrant) -> TokenGrant:
        return grant

    async def account_email(self, grant: TokenGrant) -> str | None:
        body = await self.http.get_json(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {grant.access_token}"},
        )
        return parse_provider(GoogleUserInfo, body, self.provider.value).email

    async def discover_resources(self, grant: TokenGrant) -> list[ResourceCandidate]:
        raise NotImplementedError


class GoogleAdsAdapter(GoogleOAuthAdapter):
    """Google Ads: accessible customers and campaign reporting."""

    provider = Provider.GOOGLE_ADS
    scopes = ADS_SCOPES

    def __init__(self, http: ProviderHttpClient, settings: Settings):
        super().__init__(http, settings)
        self.developer_token = settings.google_ads_developer_token
        self.ads_url = f"https://googleads.googleapis.com/{settings.google_ads_api_version}"
        self.secrets = (self.client_secret, self.developer_token)

    def _ads_headers(self, access_token: str) -> dict:
        return {
            "Authorization": f"Bearer {access_token}",
            "developer-token": self.developer_token,
        }

    async def discover_resources(self, grant: TokenGrant) -> list[ResourceCandidate]:
        body = await self.http.get_json(
            f"{self.ads_url}/customers:listAccessibleCustomers",
            headers=self._ads_headers(grant.access_token),
        )
        customers = parse_provider(GoogleAccessibleCustomers, body, self.provider.value)
        candidates = []
        for resource_name in customers.resourceNames:
            customer_id = resource_name.rsplit("/", 1)[-1]
            candidates.append(ResourceCandidate(
                id=customer_id, name=format_customer_id(customer_id),
            ))
        return candidates

    async def search_campaigns(self, customer_id: str, access_token: str) -> list[GoogleAdsRow]:
        """Run the campaign GAQL through searchStream (read-only, retryable)."""
        body = await self.http.post_json(
            f"{self.ads_url}/customers/{customer_id.replace('-', '')}/googleAds:searchStream",
            json={"query": CAMPAIGN_QUERY},
            headers=self._ads_headers(access_token),
            retry=True,
        )
        batches = body if isinstance(body, list) else [body]
        rows: list[GoogleAdsRow] = []
        for batch in batches:
            rows.extend(
                parse_provider(GoogleSearchStreamBatch, batch, self.provider.value).results,
            )
        return rows


class GoogleAnalyticsAdapter(GoogleOAuthAdapter):
    """Google Analytics: GA4 properties and traffic reports, Search Console queries."""

    provider = Provider.GOOGLE_ANALYTICS
    scopes = ANALYTICS_SCOPES

    async def discover_resources(self, grant: TokenGrant) -> list[ResourceCandidate]:
        body = await self.http.get_json(
            f"{ANALYTICS_ADMIN_URL}/accountSummaries",
            headers={"Authorization": f"Bearer {grant.access_token}"},
        )
        summaries = parse_provider(GoogleAccountSummaries, body, self.provider.value)
        candidates = []
        for account in summaries.accountSummaries:
            for prop in account.propertySummaries:
                label = prop.displayName or prop.property
                if account.displayName:
                    label = f"{account.displayName} / {label}"
                candidates.append(ResourceCandidate(
                    id=prop.property.rsplit("/", 1)[-1], name=label,
                ))
        return candidates

    def _bearer(self, access_token: str) -> dict:
        return {"Authorization": f"Bearer {access_token}"}

    async def run_report(
        self, property_id: str, access_token: str, start_date: str, end_date: str,
    ) -> GA4Report:
        """Daily sessions, users, page views and bounce rate for one property."""
        body = await self.http.post_json(
            f"{ANALYTICS_DATA_URL}/properties/{property_id}:runReport",
            json={
                "dateRanges": [{"startDate": start_date, "endDate": end_date}],
                "dimensions": [{"name": "date"}],
                "metrics": [{"name": name} for name in GA4_METRICS],
                "orderBys": [{"dimension": {"dimensionName": "date"}}],
            },
            headers=self._bearer(access_token),
            retry=True,
        )
        return parse_provider(GA4Report, body, self.provider.value)

    async def list_sites(self, access_token: str) -> SearchConsoleSites:
        body = await self.http.get_json(
            f"{SEARCH_CONSOLE_URL}/sites", headers=self._bearer(access_token),
        )
        return parse_provider(SearchConsoleSites, body, self.provider.value)

    async def search_analytics(
        self, site_url: str, access_token: str, start_date: str, end_date: str,
    ) -> SearchAnalyticsReport:
        body = await self.http.post_json(
            f"{SEARCH_CONSOLE_URL}/sites/{quote(site_url, safe='')}/searchAnalytics/query",
            json={
                "startDate": start_date,
                "endDate": end_date,
                "dimensions": ["date"],
                "rowLimit": 1000,
            },
            headers=self._bearer(access_token),
            retry=True,
        )
        return parse_provider(SearchAnalyticsReport, body, self.provider.value)
