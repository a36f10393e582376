"""SQL Repositories — SQLAlchemy implementations of the boundary Protocols.

Invariants:
    - Ledger rows are only ever INSERTed; no update or delete statement exists here
    - Every ledger append commits on its own: a committed debit is durable before
      any side effect runs
    - A unique-constraint violation on (user_id, sequence) becomes ConcurrencyError;
      on a deposit's reference_id it becomes DuplicateLedgerReference; on
      domain_name it becomes DomainUnavailable
    - All queries are scoped by user_id (a user never reads another user's rows)

Design Decisions:
    - Balance and last sequence read in one aggregate query: one round trip
      and a consistent pair for the conditional write
    - Repositories own commit for their writes; services compose them without
      ever touching the session directly
"""

import logging
from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from nexus.core.domain_types import (
    LedgerKind, Provider, RegistrationStatus, UserId,
)
from nexus.core.errors import (
    ConcurrencyError, DomainUnavailable, DuplicateLedgerReference,
)
from nexus.core.money import to_money
from nexus.models.domain_registration import DomainRegistration
from nexus.models.ledger_entry import LedgerEntry
from nexus.models.provider_connection import ProviderConnection

logger = logging.getLogger(__name__)


class SqlLedgerRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def balance_and_sequence(self, user_id: UserId) -> tuple[Decimal, int]:
        result = await self.db.execute(
            select(
                func.coalesce(func.sum(LedgerEntry.amount), 0),
                func.coalesce(func.max(LedgerEntry.sequence), 0),
            ).where(LedgerEntry.user_id == user_id),
        )
        total, last_sequence = result.one()
        return to_money(total), int(last_sequence)

    async def append(
        self,
        user_id: UserId,
        sequence: int,
        amount: Decimal,
        kind: LedgerKind,
        description: str,
        reference_id: str | None,
    ) -> LedgerEntry:
        entry = LedgerEntry(
            user_id=user_id,
            sequence=sequence,
            amount=amount,
            kind=kind.value,
            description=description,
            reference_id=reference_id,
        )
        self.db.add(entry)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            if kind is LedgerKind.DEPOSIT and reference_id is not None:
                # deposit reference index rather than the sequence key
                if await self.find_by_reference(user_id, kind, reference_id) is not None:
                    raise DuplicateLedgerReference(reference_id)
            logger.warning(
                "Ledger sequence conflict",
                extra={"user_id": user_id, "sequence": sequence},
            )
            raise ConcurrencyError(
                "Wallet was modified concurrently, please retry",
            )
        return entry

    async def list_entries(
        self, user_id: UserId, limit: int, offset: int,
    ) -> list[LedgerEntry]:
        result = await self.db.execute(
            select(LedgerEntry)
            .where(LedgerEntry.user_id == user_id)
            .order_by(LedgerEntry.sequence.desc())
            .limit(limit)
            .offset(offset),
        )
        return list(result.scalars().all())

    async def find_by_reference(
        self, user_id: UserId, kind: LedgerKind, reference_id: str,
    ) -> LedgerEntry | None:
        result = await self.db.execute(
            select(LedgerEntry).where(
                LedgerEntry.user_id == user_id,
                LedgerEntry.kind == kind.value,
                LedgerEntry.reference_id == reference_id,
            ).limit(1),
        )
        return result.scalar_one_or_none()


class SqlConnectionRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: UserId, provider: Provider) -> ProviderConnection | None:
        result = await self.db.execute(
            select(ProviderConnection).where(
                ProviderConnection.user_id == user_id,
                ProviderConnection.provider == provider.value,
            ),
        )
        return result.scalar_one_or_none()

    async def upsert(
        self, user_id: UserId, provider: Provider, **fields: object,
    ) -> ProviderConnection:
        """Create or overwrite the user's connection for provider."""
        connection = await self.get(user_id, provider)
        if connection is None:
            connection = ProviderConnection(
                user_id=user_id, provider=provider.value,
            )
            self.db.add(connection)
        for key, value in fields.items():
            setattr(connection, key, value)
        connection.is_active = True
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConcurrencyError(
                f"Connection to {provider.value} was created concurrently",
            )
        return connection

    async def update_resource(
        self,
        user_id: UserId,
        provider: Provider,
        resource_id: str,
        resource_name: str | None,
    ) -> ProviderConnection | None:
        connection = await self.get(user_id, provider)
        if connection is None:
            return None
        connection.resource_id = resource_id
        connection.resource_name = resource_name
        await self.db.commit()
        return connection

    async def list_for_user(self, user_id: UserId) -> list[ProviderConnection]:
        result = await self.db.execute(
            select(ProviderConnection)
            .where(ProviderConnection.user_id == user_id)
            .order_by(ProviderConnection.provider),
        )
        return list(result.scalars().all())

    async def deactivate(self, user_id: UserId, provider: Provider) -> bool:
        connection = await self.get(user_id, provider)
        if connection is None:
            return False
        connection.is_active = False
        await self.db.commit()
        return True


class SqlDomainRegistrationRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, domain_name: str) -> DomainRegistration | None:
        result = await self.db.execute(
            select(DomainRegistration).where(
                DomainRegistration.domain_name == domain_name,
            ),
        )
        return result.scalar_one_or_none()

    async def add(self, **fields: object) -> DomainRegistration:
        registration = DomainRegistration(**fields)
        self.db.add(registration)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DomainUnavailable(str(fields.get("domain_name")))
        return registration

    async def activate(
        self, domain_name: str, registrar_reference: str, nameservers: list[str],
    ) -> DomainRegistration | None:
        registration = await self.get(domain_name)
        if registration is None:
            return None
        registration.status = RegistrationStatus.ACTIVE.value
        registration.registrar_reference = registrar_reference
        registration.nameservers = list(nameservers)
        await self.db.commit()
        return registration

    async def release(self, domain_name: str) -> None:
        """Drop a reservation that never reached the registrar."""
        await self.db.execute(
            delete(DomainRegistration).where(
                DomainRegistration.domain_name == domain_name,
                DomainRegistration.status == RegistrationStatus.PENDING.value,
            ),
        )
        await self.db.commit()

    async def list_for_user(self, user_id: UserId) -> list[DomainRegistration]:
        result = await self.db.execute(
            select(DomainRegistration)
            .where(DomainRegistration.user_id == user_id)
            .order_by(DomainRegistration.created_at.desc()),
        )
        return list(result.scalars().all())
