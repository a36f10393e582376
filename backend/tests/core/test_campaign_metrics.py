"""Campaign Metrics — verifies the per-platform mappers and derived KPIs.

Invariants:
    - ctr = clicks / impressions * 100 (0 without impressions)
    - cost_per_result = spend / clicks (0 without clicks)
    - Meta budgets are cents, Google amounts are micros
"""

from decimal import Decimal

from nexus.core.campaign_metrics import (
    aggregate_kpis, compute_cost_per_result, compute_ctr, map_google_campaign,
    map_meta_campaign,
)
from nexus.core.domain_types import Platform


def test_ctr_and_cost_per_result():
    assert compute_ctr(25, 1000) == Decimal("2.50")
    assert compute_cost_per_result(Decimal("50.00"), 25) == Decimal("2.00")


def test_zero_denominators():
    assert compute_ctr(5, 0) == Decimal("0")
    assert compute_cost_per_result(Decimal("10.00"), 0) == Decimal("0.00")


def test_map_meta_campaign_daily_budget_in_cents():
    snapshot = map_meta_campaign({
        "id": "120001",
        "name": "Spring Sale",
        "status": "ACTIVE",
        "objective": "OUTCOME_TRAFFIC",
        "daily_budget": "2500",
        "insights": {"impressions": "1000", "clicks": "25", "spend": "50.00"},
    })
    assert snapshot.platform == Platform.META
    assert snapshot.budget == Decimal("25.00")
    assert snapshot.extra["budget_type"] == "daily"
    assert snapshot.ctr == Decimal("2.50")
    assert snapshot.cost_per_result == Decimal("2.00")


def test_map_meta_campaign_lifetime_budget_and_no_insights():
    snapshot = map_meta_campaign({
        "id": "120002", "name": "Evergreen", "status": "PAUSED",
        "lifetime_budget": "100000",
    })
    assert snapshot.budget == Decimal("1000.00")
    assert snapshot.extra["budget_type"] == "lifetime"
    assert snapshot.impressions == 0
    assert snapshot.spend == Decimal("0.00")
    assert snapshot.ctr == Decimal("0")


def test_map_google_campaign_divides_micros():
    snapshot = map_google_campaign({
        "campaign": {
            "id": "987", "name": "Search - Brand", "status": "ENABLED",
            "advertisingChannelType": "SEARCH",
        },
        "campaignBudget": {"amountMicros": "15000000"},
        "metrics": {
            "impressions": "4000", "clicks": "80", "costMicros": "32000000",
            "conversions": 4.0,
        },
    })
    assert snapshot.platform == Platform.GOOGLE
    assert snapshot.budget == Decimal("15.00")
    assert snapshot.spend == Decimal("32.00")
    assert snapshot.ctr == Decimal("2.00")
    assert snapshot.cost_per_result == Decimal("0.40")
    assert snapshot.extra == {"conversions": 4.0}


def test_aggregate_kpis_recomputes_ratios_from_totals():
    a = map_meta_campaign({
        "id": "1", "status": "ACTIVE",
        "insights": {"impressions": "1000", "clicks": "10", "spend": "20.00"},
    })
    b = map_meta_campaign({
        "id": "2", "status": "PAUSED",
        "insights": {"impressions": "3000", "clicks": "30", "spend": "40.00"},
    })
    totals = aggregate_kpis([a, b])
    assert totals["campaigns"] == 2
    assert totals["active_campaigns"] == 1
    assert totals["impressions"] == 4000
    assert totals["clicks"] == 40
    assert totals["spend"] == 60.0
    assert totals["ctr"] == 1.0
    assert totals["cost_per_result"] == 1.5


def test_to_dict_serializes_numbers():
    snapshot = map_meta_campaign({
        "id": "1", "name": "x", "status": "ACTIVE", "daily_budget": "1000",
        "insights": {"impressions": "10", "clicks": "1", "spend": "0.50"},
    })
    body = snapshot.to_dict()
    assert body["platform"] == "meta"
    assert body["budget"] == 10.0
    assert body["ctr"] == 10.0
    assert body["cost_per_result"] == 0.5
