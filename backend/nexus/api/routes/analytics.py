"""Analytics Routes — GA4 traffic and Search Console reports for the connected account.

Invariants:
    - Always 200: a missing connection or upstream failure is reported in the body
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from nexus.api.dependencies import CurrentUser, get_analytics_reader
from nexus.services.analytics_reader import AnalyticsReader

router = APIRouter(prefix="/api/v1/analytics", tags=["analytics"])

ReaderDep = Annotated[AnalyticsReader, Depends(get_analytics_reader)]
SiteUrl = Annotated[str | None, Query(alias="siteUrl", max_length=2000)]


@router.get("/traffic")
async def traffic_report(user_id: CurrentUser, reader: ReaderDep):
    return (await reader.traffic(user_id)).to_dict()


@router.get("/search-console")
async def search_console_report(
    user_id: CurrentUser, reader: ReaderDep, site_url: SiteUrl = None,
):
    return (await reader.search_console(user_id, site_url)).to_dict()


@router.get("")
async def analytics_overview(
    user_id: CurrentUser, reader: ReaderDep, site_url: SiteUrl = None,
):
    """Both reports fetched concurrently."""
    traffic, search = await reader.overview(user_id, site_url)
    return {
        "success": traffic.success or search.success,
        "traffic": traffic.to_dict(),
        "search_console": search.to_dict(),
    }
