"""OAuth Adapter Contract — the shape every connectable provider implements.

Invariants:
    - exchange_code is called at most once per callback and never retried
      (authorization codes are single-use)
    - discover_resources returns candidates in provider order; the connector
      decides between auto-selection and the pick-account flow
    - Adapters never persist anything and never build redirects

Design Decisions:
    - Protocol over ABC: adapters share no behaviour, only a call shape
    - TokenGrant is frozen: upgrade() returns a new grant instead of mutating
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Protocol

from nexus.core.domain_types import Provider


@dataclass(frozen=True)
class TokenGrant:
    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None

    def expires_at(self, now: datetime | None = None) -> datetime | None:
        if self.expires_in is None:
            return None
        return (now or datetime.now(timezone.utc)) + timedelta(seconds=self.expires_in)

    def with_access_token(self, access_token: str, expires_in: int | None) -> "TokenGrant":
        return replace(self, access_token=access_token, expires_in=expires_in)


@dataclass(frozen=True)
class ResourceCandidate:
    """A downstream account the user can attach to a connection."""
    id: str
    name: str
    status: str | int | None = None

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "status": self.status}


class OAuthAdapter(Protocol):
    provider: Provider
    requires_refresh_token: bool

    @property
    def secrets(self) -> tuple[str, ...]: ...

    def authorize_url(self, redirect_uri: str, state: str) -> str: ...

    async def exchange_code(self, code: str, redirect_uri: str) -> TokenGrant: ...

    async def upgrade(self, grant: TokenGrant) -> TokenGrant: ...

    async def account_email(self, grant: TokenGrant) -> str | None: ...

    async def discover_resources(self, grant: TokenGrant) -> list[ResourceCandidate]: ...
