"""Analytics Reader — GA4 traffic and Search Console reports over the stored Google Analytics grant.

Invariants:
    - Every read refreshes the access token from the stored refresh token first
    - Traffic needs the selected GA4 property (connection resource); Search
      Console needs a site URL from the caller and lists the verified sites
      when none is given
    - A missing/pending connection or an upstream failure affects that report
      only: {success: False, error}
    - Both reports cover the same trailing window (analytics_metrics.report_window)
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from nexus.core.analytics_metrics import (
    SearchDay, TrafficDay, map_ga4_row, report_window, search_totals, traffic_totals,
)
from nexus.core.domain_types import Provider, UserId
from nexus.core.errors import NexusError, PartialSelectionPending
from nexus.core.repository_protocols import ConnectionLike, ConnectionRepository
from nexus.infrastructure.providers.google import GoogleAnalyticsAdapter

logger = logging.getLogger(__name__)

PROVIDER = Provider.GOOGLE_ANALYTICS
MSG_NOT_CONNECTED = f"{PROVIDER.value} is not connected"
MSG_NO_REFRESH = "Google Analytics connection has no refresh token, reconnect the account"
MSG_SITE_REQUIRED = "siteUrl is required"


@dataclass(frozen=True)
class TrafficReport:
    success: bool
    property_id: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    days: list[TrafficDay] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        if not self.success:
            return {"success": False, "property_id": self.property_id, "error": self.error}
        return {
            "success": True,
            "property_id": self.property_id,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "totals": traffic_totals(self.days),
            "daily": [d.to_dict() for d in self.days],
        }


@dataclass(frozen=True)
class SearchReport:
    success: bool
    site_url: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    days: list[SearchDay] = field(default_factory=list)
    sites: list[dict] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        if not self.success:
            body = {"success": False, "site_url": self.site_url, "error": self.error}
            if self.sites:
                body["sites"] = self.sites
            return body
        return {
            "success": True,
            "site_url": self.site_url,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "totals": search_totals(self.days),
            "daily": [d.to_dict() for d in self.days],
        }


class AnalyticsReader:
    def __init__(self, connections: ConnectionRepository, analytics: GoogleAnalyticsAdapter):
        self.connections = connections
        self.analytics = analytics

    async def _connection(self, user_id: UserId) -> ConnectionLike | str:
        """The usable connection, or the error message explaining why not."""
        connection = await self.connections.get(user_id, PROVIDER)
        if connection is None or not connection.is_active:
            return MSG_NOT_CONNECTED
        if not connection.refresh_token:
            return MSG_NO_REFRESH
        return connection

    async def traffic(self, user_id: UserId) -> TrafficReport:
        connection = await self._connection(user_id)
        if isinstance(connection, str):
            return TrafficReport(False, error=connection)
        if connection.resource_id is None:
            return TrafficReport(False, error=PartialSelectionPending(PROVIDER.value).message)

        start, end = report_window(datetime.now(timezone.utc).date())
        try:
            grant = await self.analytics.refresh(connection.refresh_token)
            report = await self.analytics.run_report(
                connection.resource_id, grant.access_token, start, end,
            )
        except NexusError as e:
            return TrafficReport(
                False, property_id=connection.resource_id,
                error=self._failed("traffic", user_id, e),
            )
        days = [
            map_ga4_row(
                [v.value for v in row.dimensionValues],
                [v.value for v in row.metricValues],
            )
            for row in report.rows
        ]
        return TrafficReport(
            True, property_id=connection.resource_id,
            start_date=start, end_date=end, days=days,
        )

    async def search_console(self, user_id: UserId, site_url: str | None) -> SearchReport:
        connection = await self._connection(user_id)
        if isinstance(connection, str):
            return SearchReport(False, site_url=site_url, error=connection)

        start, end = report_window(datetime.now(timezone.utc).date())
        try:
            grant = await self.analytics.refresh(connection.refresh_token)
            if not site_url:
                sites = await self.analytics.list_sites(grant.access_token)
                return SearchReport(
                    False, error=MSG_SITE_REQUIRED,
                    sites=[
                        {"site_url": s.siteUrl, "permission_level": s.permissionLevel}
                        for s in sites.siteEntry
                    ],
                )
            report = await self.analytics.search_analytics(
                site_url, grant.access_token, start, end,
            )
        except NexusError as e:
            return SearchReport(
                False, site_url=site_url, error=self._failed("search_console", user_id, e),
            )
        days = [
            SearchDay(
                date=row.keys[0] if row.keys else "",
                clicks=int(row.clicks),
                impressions=int(row.impressions),
                ctr=row.ctr,
                position=row.position,
            )
            for row in report.rows
        ]
        return SearchReport(
            True, site_url=site_url, start_date=start, end_date=end, days=days,
        )

    async def overview(
        self, user_id: UserId, site_url: str | None,
    ) -> tuple[TrafficReport, SearchReport]:
        traffic, search = await asyncio.gather(
            self.traffic(user_id), self.search_console(user_id, site_url),
        )
        return traffic, search

    def _failed(self, report: str, user_id: UserId, e: NexusError) -> str:
        logger.warning(
            f"Analytics {report} fetch failed: {e.message}",
            extra={"provider": PROVIDER.value, "user_id": user_id, "error_code": e.code},
        )
        return getattr(e, "provider_message", None) or e.message
