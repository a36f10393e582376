"""OAuth Connector — authorize URL issuance, callback handling and resource selection.

Invariants:
    - issue_auth_url persists nothing; the signed state is the only carrier of
      (user_id, return_origin) across the redirect
    - handle_callback never raises: every outcome is a redirect URL
    - Provider error, bad/expired state or missing code → error redirect with
      no token endpoint call
    - The redirect_uri sent at exchange is byte-identical to the one issued
    - Exactly one candidate → connection stored with that resource (CONNECTED);
      zero or several → stored with resource_id None (AWAITING_SELECTION)
    - Google connections without a refresh token are never stored
    - set_resource only ever touches the caller's own connection

Design Decisions:
    - Phase transitions logged with provider + user id at each step
    - Upgrade and identity lookups are best-effort; exchange is terminal on failure
    - Discovery failure degrades to the pick-account flow: the grant is still
      valid and the account can be chosen (or typed in) afterwards
"""

import logging
from dataclasses import dataclass

from nexus.config import Settings
from nexus.core.domain_types import ConnectionPhase, Provider, UserId
from nexus.core.errors import MalformedInput, NexusError, ResourceNotFoundError
from nexus.core.oauth_redirects import (
    connected_redirect, error_redirect, normalize_origin, pick_account_redirect,
)
from nexus.core.oauth_state import InvalidOAuthState, decode_state, encode_state
from nexus.core.repository_protocols import ConnectionLike, ConnectionRepository
from nexus.infrastructure.providers.base import OAuthAdapter, ResourceCandidate

logger = logging.getLogger(__name__)

MSG_MISSING_PARAMS = "Missing authorization parameters"
MSG_INVALID_STATE = "Authorization request expired or invalid, please try again"
MSG_NO_REFRESH_TOKEN = (
    "No refresh token received. Revoke access at myaccount.google.com and try again."
)
MSG_INTERNAL = "Internal server error"


@dataclass(frozen=True)
class ConnectionSummary:
    provider: str
    resource_id: str | None
    resource_name: str | None
    account_email: str | None
    is_active: bool
    pending_selection: bool

    @classmethod
    def from_connection(cls, connection: ConnectionLike) -> "ConnectionSummary":
        return cls(
            provider=connection.provider,
            resource_id=connection.resource_id,
            resource_name=connection.resource_name,
            account_email=connection.account_email,
            is_active=connection.is_active,
            pending_selection=connection.resource_id is None,
        )


def parse_provider_name(name: str) -> Provider:
    try:
        return Provider(name)
    except ValueError:
        raise MalformedInput(f"Unknown provider '{name}'", "provider")


class OAuthConnector:
    def __init__(
        self,
        adapters: dict[Provider, OAuthAdapter],
        connections: ConnectionRepository,
        settings: Settings,
    ):
        self.adapters = adapters
        self.connections = connections
        self.state_secret = settings.oauth_state_secret
        self.state_ttl = settings.oauth_state_ttl_seconds
        self.fallback_origin = settings.oauth_fallback_origin
        self.callback_base = settings.oauth_callback_base

    def redirect_uri(self, provider: Provider) -> str:
        return f"{self.callback_base}/{provider.value}/callback"

    def _adapter(self, provider: Provider) -> OAuthAdapter:
        adapter = self.adapters.get(provider)
        if adapter is None:
            raise MalformedInput(f"Provider '{provider.value}' is not enabled", "provider")
        return adapter

    def _log_phase(
        self, phase: ConnectionPhase, provider: Provider, user_id: str | None, detail: str = "",
    ) -> None:
        level = logging.WARNING if phase == ConnectionPhase.FAILED else logging.INFO
        logger.log(
            level,
            f"OAuth {phase.value}{': ' + detail if detail else ''}",
            extra={"provider": provider.value, "user_id": user_id, "phase": phase.value},
        )

    # ─── Issuance ─────────────────────────────────────────────────

    def issue_auth_url(
        self, user_id: UserId, return_origin: str | None, provider: Provider,
    ) -> str:
        adapter = self._adapter(provider)
        self._log_phase(ConnectionPhase.START, provider, user_id)
        state = encode_state(
            user_id, normalize_origin(return_origin), self.state_secret,
        )
        url = adapter.authorize_url(self.redirect_uri(provider), state)
        self._log_phase(ConnectionPhase.AUTH_URL_ISSUED, provider, user_id)
        return url

    # ─── Callback ─────────────────────────────────────────────────

    async def handle_callback(
        self,
        provider: Provider,
        code: str | None,
        state: str | None,
        error: str | None,
    ) -> str:
        """Resolve a provider callback into the settings-page redirect URL."""
        try:
            decoded = decode_state(state, self.state_secret, ttl_seconds=self.state_ttl)
        except InvalidOAuthState as e:
            self._log_phase(ConnectionPhase.FAILED, provider, None, str(e))
            message = error or MSG_INVALID_STATE
            return error_redirect(None, self.fallback_origin, provider.value, message)

        user_id = UserId(decoded.user_id)
        origin = decoded.return_origin
        self._log_phase(ConnectionPhase.CALLBACK_RECEIVED, provider, user_id)

        if error:
            self._log_phase(ConnectionPhase.FAILED, provider, user_id, error)
            return error_redirect(origin, self.fallback_origin, provider.value, error)
        if not code:
            self._log_phase(ConnectionPhase.FAILED, provider, user_id, "missing code")
            return error_redirect(
                origin, self.fallback_origin, provider.value, MSG_MISSING_PARAMS,
            )

        try:
            return await self._complete(provider, user_id, origin, code)
        except NexusError as e:
            self._log_phase(ConnectionPhase.FAILED, provider, user_id, e.code)
            message = getattr(e, "provider_message", None) or e.message
            return error_redirect(origin, self.fallback_origin, provider.value, message)
        except Exception:
            logger.exception(
                "Unexpected OAuth callback failure",
                extra={"provider": provider.value, "user_id": user_id},
            )
            return error_redirect(
                origin, self.fallback_origin, provider.value, MSG_INTERNAL,
            )

    async def _complete(
        self, provider: Provider, user_id: UserId, origin: str, code: str,
    ) -> str:
        adapter = self._adapter(provider)
        grant = await adapter.exchange_code(code, self.redirect_uri(provider))
        if adapter.requires_refresh_token and not grant.refresh_token:
            self._log_phase(ConnectionPhase.FAILED, provider, user_id, "no refresh token")
            return error_redirect(
                origin, self.fallback_origin, provider.value, MSG_NO_REFRESH_TOKEN,
            )
        self._log_phase(ConnectionPhase.TOKEN_EXCHANGED, provider, user_id)

        try:
            grant = await adapter.upgrade(grant)
        except NexusError as e:
            logger.warning(
                f"Token upgrade failed, keeping short-lived token: {e.message}",
                extra={"provider": provider.value, "user_id": user_id},
            )

        email = await self._account_email(adapter, grant, user_id)
        candidates = await self._discover(adapter, grant, user_id)

        selected = candidates[0] if len(candidates) == 1 else None
        await self.connections.upsert(
            user_id,
            provider,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            token_expires_at=grant.expires_at(),
            account_email=email,
            resource_id=selected.id if selected else None,
            resource_name=selected.name if selected else None,
        )

        if selected is not None:
            self._log_phase(ConnectionPhase.RESOURCE_SELECTED, provider, user_id)
            self._log_phase(ConnectionPhase.CONNECTED, provider, user_id)
            return connected_redirect(
                origin, self.fallback_origin, provider.value, selected.name or selected.id,
            )
        self._log_phase(
            ConnectionPhase.AWAITING_SELECTION, provider, user_id,
            f"{len(candidates)} candidates",
        )
        return pick_account_redirect(
            origin, self.fallback_origin, provider.value,
            [c.to_dict() for c in candidates],
        )

    async def _account_email(self, adapter, grant, user_id: UserId) -> str | None:
        try:
            return await adapter.account_email(grant)
        except NexusError as e:
            logger.warning(
                f"Account identity lookup failed: {e.message}",
                extra={"provider": adapter.provider.value, "user_id": user_id},
            )
            return None

    async def _discover(self, adapter, grant, user_id: UserId) -> list[ResourceCandidate]:
        try:
            return await adapter.discover_resources(grant)
        except NexusError as e:
            logger.warning(
                f"Resource discovery failed: {e.message}",
                extra={"provider": adapter.provider.value, "user_id": user_id},
            )
            return []

    # ─── Selection & management ───────────────────────────────────

    async def set_resource(
        self,
        user_id: UserId,
        provider: Provider,
        resource_id: str,
        resource_name: str | None = None,
    ) -> ConnectionSummary:
        resource_id = (resource_id or "").strip()
        if not resource_id:
            raise MalformedInput("resource_id is required", "resource_id")
        connection = await self.connections.update_resource(
            user_id, provider, resource_id, resource_name,
        )
        if connection is None:
            raise ResourceNotFoundError("Connection", provider.value)
        self._log_phase(ConnectionPhase.RESOURCE_SELECTED, provider, user_id)
        self._log_phase(ConnectionPhase.CONNECTED, provider, user_id)
        return ConnectionSummary.from_connection(connection)

    async def list_connections(self, user_id: UserId) -> list[ConnectionSummary]:
        return [
            ConnectionSummary.from_connection(c)
            for c in await self.connections.list_for_user(user_id)
        ]

    async def disconnect(self, user_id: UserId, provider: Provider) -> None:
        if not await self.connections.deactivate(user_id, provider):
            raise ResourceNotFoundError("Connection", provider.value)
        logger.info(
            "Connection deactivated",
            extra={"provider": provider.value, "user_id": user_id},
        )
