"""Boundary Protocols — contracts between core/services and the persistence shell.

Invariants:
    - Core NEVER imports from infrastructure — dependency arrows point inward only
    - All storage operations accessed through Protocol types (abstract keyed tables)
    - Implementations provided by infrastructure/repositories.py via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Ledger append takes the expected sequence: the store turns an interleaved
      write into a ConcurrencyError instead of a silent overdraft
"""

from datetime import datetime
from decimal import Decimal
from typing import Protocol

from nexus.core.domain_types import LedgerKind, Provider, UserId


class LedgerEntryLike(Protocol):
    """Structural contract for persisted ledger entries."""
    user_id: str
    sequence: int
    amount: Decimal
    kind: str
    description: str
    reference_id: str | None
    created_at: datetime


class ConnectionLike(Protocol):
    """Structural contract for persisted provider connections."""
    user_id: str
    provider: str
    access_token: str
    refresh_token: str | None
    resource_id: str | None
    resource_name: str | None
    account_email: str | None
    is_active: bool


class LedgerRepository(Protocol):
    """Append-only ledger store keyed by user + sequence."""
    async def balance_and_sequence(self, user_id: UserId) -> tuple[Decimal, int]: ...
    async def append(
        self,
        user_id: UserId,
        sequence: int,
        amount: Decimal,
        kind: LedgerKind,
        description: str,
        reference_id: str | None,
    ) -> LedgerEntryLike: ...
    async def list_entries(
        self, user_id: UserId, limit: int, offset: int,
    ) -> list[LedgerEntryLike]: ...
    async def find_by_reference(
        self, user_id: UserId, kind: LedgerKind, reference_id: str,
    ) -> LedgerEntryLike | None: ...


class ConnectionRepository(Protocol):
    """Provider connections keyed by user + provider."""
    async def get(self, user_id: UserId, provider: Provider) -> ConnectionLike | None: ...
    async def upsert(
        self, user_id: UserId, provider: Provider, **fields: object,
    ) -> ConnectionLike: ...
    async def update_resource(
        self,
        user_id: UserId,
        provider: Provider,
        resource_id: str,
        resource_name: str | None,
    ) -> ConnectionLike | None: ...
    async def list_for_user(self, user_id: UserId) -> list[ConnectionLike]: ...
    async def deactivate(self, user_id: UserId, provider: Provider) -> bool: ...


class DomainRegistrationRepository(Protocol):
    """Domain registrations keyed by domain name."""
    async def get(self, domain_name: str) -> object | None: ...
    async def add(self, **fields: object) -> object: ...
    async def activate(
        self, domain_name: str, registrar_reference: str, nameservers: list[str],
    ) -> object | None: ...
    async def release(self, domain_name: str) -> None: ...
    async def list_for_user(self, user_id: UserId) -> list: ...
