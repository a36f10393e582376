"""Campaign Metrics — one normalized campaign shape for every ad platform.

Invariants:
    - ctr = clicks / impressions * 100, 0 when impressions == 0
    - cost_per_result = spend / clicks, 0 when clicks == 0
    - Monetary fields are Decimal in currency units (minor units already divided)
    - Platform-only fields live in `extra`, never as top-level attributes

Design Decisions:
    - One pure mapper per platform over already-validated provider payloads:
      the aggregator never branches on platform when computing KPIs
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from nexus.core.domain_types import Platform
from nexus.core.money import ZERO, divide_minor_units, money_sum, to_money

META_BUDGET_DIVISOR = 100
GOOGLE_MICROS_DIVISOR = 1_000_000
INSIGHT_WINDOW_DAYS = 30


def compute_ctr(clicks: int, impressions: int) -> Decimal:
    if impressions <= 0:
        return Decimal("0")
    ratio = Decimal(clicks) / Decimal(impressions) * 100
    return ratio.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def compute_cost_per_result(spend: Decimal, clicks: int) -> Decimal:
    if clicks <= 0:
        return ZERO
    return to_money(spend / Decimal(clicks))


@dataclass(frozen=True)
class CampaignSnapshot:
    id: str
    platform: Platform
    name: str
    status: str
    budget: Decimal | None
    impressions: int
    clicks: int
    spend: Decimal
    objective: str | None = None
    extra: dict = field(default_factory=dict)

    @property
    def ctr(self) -> Decimal:
        return compute_ctr(self.clicks, self.impressions)

    @property
    def cost_per_result(self) -> Decimal:
        return compute_cost_per_result(self.spend, self.clicks)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "platform": self.platform.value,
            "name": self.name,
            "status": self.status,
            "objective": self.objective,
            "budget": float(self.budget) if self.budget is not None else None,
            "impressions": self.impressions,
            "clicks": self.clicks,
            "spend": float(self.spend),
            "ctr": float(self.ctr),
            "cost_per_result": float(self.cost_per_result),
            "extra": self.extra,
        }


def _as_int(value) -> int:
    if value in (None, ""):
        return 0
    return int(Decimal(str(value)))


def map_meta_campaign(raw: dict) -> CampaignSnapshot:
    """Meta Marketing API campaign (with last-30-day insights) → snapshot."""
    insights = raw.get("insights") or {}
    daily = raw.get("daily_budget")
    lifetime = raw.get("lifetime_budget")
    budget_cents = daily if daily not in (None, "") else lifetime
    return CampaignSnapshot(
        id=str(raw["id"]),
        platform=Platform.META,
        name=raw.get("name") or "",
        status=raw.get("status") or "UNKNOWN",
        objective=raw.get("objective"),
        budget=(
            divide_minor_units(budget_cents, META_BUDGET_DIVISOR)
            if budget_cents not in (None, "") else None
        ),
        impressions=_as_int(insights.get("impressions")),
        clicks=_as_int(insights.get("clicks")),
        spend=to_money(insights.get("spend") or 0),
        extra={
            "budget_type": "daily" if daily not in (None, "") else (
                "lifetime" if lifetime not in (None, "") else None
            ),
            "start_time": raw.get("start_time"),
            "stop_time": raw.get("stop_time"),
        },
    )


def map_google_campaign(row: dict) -> CampaignSnapshot:
    """Google Ads searchStream result row → snapshot (micros divided out)."""
    campaign = row.get("campaign") or {}
    budget = row.get("campaignBudget") or {}
    metrics = row.get("metrics") or {}
    amount_micros = budget.get("amountMicros")
    return CampaignSnapshot(
        id=str(campaign["id"]),
        platform=Platform.GOOGLE,
        name=campaign.get("name") or "",
        status=campaign.get("status") or "UNKNOWN",
        objective=campaign.get("advertisingChannelType"),
        budget=(
            divide_minor_units(amount_micros, GOOGLE_MICROS_DIVISOR)
            if amount_micros not in (None, "") else None
        ),
        impressions=_as_int(metrics.get("impressions")),
        clicks=_as_int(metrics.get("clicks")),
        spend=divide_minor_units(metrics.get("costMicros"), GOOGLE_MICROS_DIVISOR),
        extra={"conversions": metrics.get("conversions")},
    )


def aggregate_kpis(campaigns: list[CampaignSnapshot]) -> dict:
    """Totals across campaigns with the same derived ratios."""
    impressions = sum(c.impressions for c in campaigns)
    clicks = sum(c.clicks for c in campaigns)
    spend = money_sum(c.spend for c in campaigns)
    return {
        "campaigns": len(campaigns),
        "active_campaigns": sum(
            1 for c in campaigns if c.status.upper() in ("ACTIVE", "ENABLED")
        ),
        "impressions": impressions,
        "clicks": clicks,
        "spend": float(spend),
        "ctr": float(compute_ctr(clicks, impressions)),
        "cost_per_result": float(compute_cost_per_result(spend, clicks)),
    }
