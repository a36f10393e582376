"""Campaign Aggregator — read-only campaign view across Meta Ads and Google Ads.

Invariants:
    - Only active connections with a selected resource are used
    - A missing/pending connection or an upstream failure affects that platform
      only: {success: False, error, campaigns: []}
    - list_all fetches both platforms concurrently
    - Every campaign goes through the pure mapper for its platform; KPIs are
      computed once, platform-agnostic
"""

import asyncio
import logging
from dataclasses import dataclass, field

from nexus.core.campaign_metrics import (
    CampaignSnapshot, aggregate_kpis, map_google_campaign, map_meta_campaign,
)
from nexus.core.domain_types import Platform, Provider, UserId
from nexus.core.errors import NexusError, PartialSelectionPending
from nexus.core.repository_protocols import ConnectionLike, ConnectionRepository
from nexus.infrastructure.providers.google import GoogleAdsAdapter
from nexus.infrastructure.providers.meta import MetaAdsAdapter

logger = logging.getLogger(__name__)

MSG_NOT_CONNECTED = "{platform} is not connected"


@dataclass(frozen=True)
class PlatformCampaigns:
    platform: Platform
    success: bool
    campaigns: list[CampaignSnapshot] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        body: dict = {
            "success": self.success,
            "platform": self.platform.value,
            "campaigns": [c.to_dict() for c in self.campaigns],
        }
        if self.success:
            body["totals"] = aggregate_kpis(self.campaigns)
        else:
            body["error"] = self.error
        return body


class CampaignAggregator:
    def __init__(
        self,
        connections: ConnectionRepository,
        meta: MetaAdsAdapter,
        google: GoogleAdsAdapter,
    ):
        self.connections = connections
        self.meta = meta
        self.google = google

    async def _usable_connection(
        self, user_id: UserId, provider: Provider, platform: Platform,
    ) -> ConnectionLike | PlatformCampaigns:
        connection = await self.connections.get(user_id, provider)
        if connection is None or not connection.is_active:
            return PlatformCampaigns(
                platform, False,
                error=MSG_NOT_CONNECTED.format(platform=provider.value),
            )
        if connection.resource_id is None:
            return PlatformCampaigns(
                platform, False, error=PartialSelectionPending(provider.value).message,
            )
        return connection

    async def list_meta(self, user_id: UserId) -> PlatformCampaigns:
        connection = await self._usable_connection(
            user_id, Provider.META_ADS, Platform.META,
        )
        if isinstance(connection, PlatformCampaigns):
            return connection
        try:
            raw = await self.meta.list_campaigns(
                connection.resource_id, connection.access_token,
            )
        except NexusError as e:
            return self._failed(Platform.META, user_id, e)
        return PlatformCampaigns(
            Platform.META, True,
            campaigns=[map_meta_campaign(c.flattened()) for c in raw],
        )

    async def list_google(self, user_id: UserId) -> PlatformCampaigns:
        connection = await self._usable_connection(
            user_id, Provider.GOOGLE_ADS, Platform.GOOGLE,
        )
        if isinstance(connection, PlatformCampaigns):
            return connection
        if not connection.refresh_token:
            return PlatformCampaigns(
                Platform.GOOGLE, False,
                error="Google Ads connection has no refresh token, reconnect the account",
            )
        try:
            grant = await self.google.refresh(connection.refresh_token)
            rows = await self.google.search_campaigns(
                connection.resource_id, grant.access_token,
            )
        except NexusError as e:
            return self._failed(Platform.GOOGLE, user_id, e)
        return PlatformCampaigns(
            Platform.GOOGLE, True,
            campaigns=[
                map_google_campaign(row.model_dump(exclude_none=True)) for row in rows
            ],
        )

    async def list_all(self, user_id: UserId) -> dict[Platform, PlatformCampaigns]:
        meta, google = await asyncio.gather(
            self.list_meta(user_id), self.list_google(user_id),
        )
        return {Platform.META: meta, Platform.GOOGLE: google}

    def _failed(self, platform: Platform, user_id: UserId, e: NexusError) -> PlatformCampaigns:
        logger.warning(
            f"Campaign fetch failed: {e.message}",
            extra={"provider": platform.value, "user_id": user_id, "error_code": e.code},
        )
        return PlatformCampaigns(
            platform, False, error=getattr(e, "provider_message", None) or e.message,
        )
