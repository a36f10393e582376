"""Provider Response Schemas — explicit shapes for every third-party JSON body we read.

Invariants:
    - Every provider body passes through parse_provider() before use
    - Unexpected shapes raise UpstreamProviderError (fail closed), never KeyError deep
      inside a service
    - Unknown extra fields are ignored (providers add fields without notice)

Design Decisions:
    - Pydantic models over dict.get chains: field presence is checked once, at the
      boundary, and the services work with typed attributes
"""

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from nexus.core.errors import UpstreamProviderError

T = TypeVar("T", bound=BaseModel)


class ProviderModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def parse_provider(model: type[T], body: Any, provider: str) -> T:
    """Validate a provider body or fail closed."""
    try:
        return model.model_validate(body)
    except ValidationError as e:
        fields = ", ".join(
            ".".join(str(p) for p in err["loc"]) or "<root>" for err in e.errors()
        )
        raise UpstreamProviderError(
            provider, f"unexpected response shape ({fields})", transient=False,
        )


# ─── Identity provider ──────────────────────────────────────────

class IdentityUser(ProviderModel):
    id: str = Field(min_length=1)
    email: str | None = None


# ─── Meta Graph ─────────────────────────────────────────────────

class MetaToken(ProviderModel):
    access_token: str = Field(min_length=1)
    token_type: str | None = None
    expires_in: int | None = None


class MetaAdAccount(ProviderModel):
    id: str
    name: str | None = None
    account_status: int | None = None


class MetaAdAccountList(ProviderModel):
    data: list[MetaAdAccount] = []


class MetaInsight(ProviderModel):
    impressions: str | int | None = None
    clicks: str | int | None = None
    spend: str | float | None = None
    ctr: str | float | None = None
    cpc: str | float | None = None


class MetaInsightEnvelope(ProviderModel):
    data: list[MetaInsight] = []


class MetaCampaign(ProviderModel):
    id: str
    name: str | None = None
    status: str | None = None
    objective: str | None = None
    daily_budget: str | int | None = None
    lifetime_budget: str | int | None = None
    start_time: str | None = None
    stop_time: str | None = None
    insights: MetaInsightEnvelope | None = None

    def flattened(self) -> dict:
        """Campaign dict with the first insight row inlined (mapper input)."""
        raw = self.model_dump(exclude={"insights"})
        rows = self.insights.data if self.insights else []
        raw["insights"] = rows[0].model_dump() if rows else {}
        return raw


class GraphPaging(ProviderModel):
    next: str | None = None


class MetaCampaignList(ProviderModel):
    data: list[MetaCampaign] = []
    paging: GraphPaging | None = None


class GraphSubscribedApps(ProviderModel):
    data: list[dict] = []


class GraphSuccess(ProviderModel):
    success: bool = False


# ─── Google ─────────────────────────────────────────────────────

class GoogleToken(ProviderModel):
    access_token: str = Field(min_length=1)
    refresh_token: str | None = None
    expires_in: int | None = None
    scope: str | None = None


class GoogleUserInfo(ProviderModel):
    email: str | None = None


class GoogleAccessibleCustomers(ProviderModel):
    resourceNames: list[str] = []


class GoogleCampaign(ProviderModel):
    id: str | int
    name: str | None = None
    status: str | None = None
    advertisingChannelType: str | None = None


class GoogleBudget(ProviderModel):
    amountMicros: str | int | None = None


class GoogleMetrics(ProviderModel):
    impressions: str | int | None = None
    clicks: str | int | None = None
    costMicros: str | int | None = None
    conversions: float | str | None = None


class GoogleAdsRow(ProviderModel):
    campaign: GoogleCampaign
    campaignBudget: GoogleBudget | None = None
    metrics: GoogleMetrics | None = None


class GoogleSearchStreamBatch(ProviderModel):
    results: list[GoogleAdsRow] = []


class GooglePropertySummary(ProviderModel):
    property: str
    displayName: str | None = None


class GoogleAccountSummary(ProviderModel):
    account: str | None = None
    displayName: str | None = None
    propertySummaries: list[GooglePropertySummary] = []


class GoogleAccountSummaries(ProviderModel):
    accountSummaries: list[GoogleAccountSummary] = []


class GA4Value(ProviderModel):
    value: str | None = None


class GA4Row(ProviderModel):
    dimensionValues: list[GA4Value] = []
    metricValues: list[GA4Value] = []


class GA4Report(ProviderModel):
    """runReport body; GA4 omits `rows` entirely for an empty range."""
    rows: list[GA4Row] = []


class SearchAnalyticsRow(ProviderModel):
    keys: list[str] = []
    clicks: float = 0
    impressions: float = 0
    ctr: float = 0
    position: float = 0


class SearchAnalyticsReport(ProviderModel):
    rows: list[SearchAnalyticsRow] = []


class SearchConsoleSite(ProviderModel):
    siteUrl: str
    permissionLevel: str | None = None


class SearchConsoleSites(ProviderModel):
    siteEntry: list[SearchConsoleSite] = []


# ─── Porkbun ────────────────────────────────────────────────────

class PorkbunAvailabilityDetail(ProviderModel):
    avail: str | None = None
    price: str | None = None


class PorkbunAvailability(ProviderModel):
    status: str
    avail: str | None = None
    response: PorkbunAvailabilityDetail | None = None

    @property
    def available(self) -> bool:
        if self.status != "SUCCESS":
            return False
        flag = self.avail or (self.response.avail if self.response else None)
        return flag == "yes"


class PorkbunRegistration(ProviderModel):
    status: str
    domain: str | None = None
    orderId: str | int | None = None
    message: str | None = None


# ─── Stripe ─────────────────────────────────────────────────────

class StripeCheckoutSession(ProviderModel):
    id: str
    url: str | None = None


class StripeEventData(ProviderModel):
    object: dict


class StripeEvent(ProviderModel):
    id: str
    type: str
    data: StripeEventData
