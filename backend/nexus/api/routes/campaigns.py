"""Campaign Routes — normalized campaign lists per platform and combined.

Invariants:
    - Always 200: per-platform failures are reported in the body, never as errors
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from nexus.api.dependencies import CurrentUser, get_campaign_aggregator
from nexus.core.campaign_metrics import aggregate_kpis
from nexus.services.campaign_aggregator import CampaignAggregator

router = APIRouter(prefix="/api/v1/campaigns", tags=["campaigns"])

AggregatorDep = Annotated[CampaignAggregator, Depends(get_campaign_aggregator)]


@router.get("/meta")
async def list_meta_campaigns(user_id: CurrentUser, aggregator: AggregatorDep):
    return (await aggregator.list_meta(user_id)).to_dict()


@router.get("/google")
async def list_google_campaigns(user_id: CurrentUser, aggregator: AggregatorDep):
    return (await aggregator.list_google(user_id)).to_dict()


@router.get("")
async def list_all_campaigns(user_id: CurrentUser, aggregator: AggregatorDep):
    """Both platforms fetched concurrently, plus combined totals."""
    results = await aggregator.list_all(user_id)
    campaigns = [c for r in results.values() if r.success for c in r.campaigns]
    return {
        "success": any(r.success for r in results.values()),
        "platforms": {p.value: r.to_dict() for p, r in results.items()},
        "campaigns": [c.to_dict() for c in campaigns],
        "totals": aggregate_kpis(campaigns),
    }
