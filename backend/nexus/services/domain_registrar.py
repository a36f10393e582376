"""Domain Registrar Service — priced search with parallel probes, and wallet-funded registration.

Invariants:
    - search probes the primary domain and every alternate TLD concurrently
      (asyncio.gather); latency is bounded by the slowest probe
    - A failed probe degrades to available=False for that candidate only
    - register reserves the domain (status pending) before any ledger write, then
      runs the ledger purchase saga: debit → registrar → activate → cashback
    - A domain already registered or reserved here is rejected before any ledger
      write, including a reservation that lands between the lookup and the insert
    - A failed order that never got a registrar receipt releases its reservation;
      one that did keeps the pending row for reconciliation
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from nexus.config import Settings
from nexus.core.domain_names import (
    alternate_candidates, parse_domain, registration_expiry,
)
from nexus.core.domain_types import LedgerKind, RegistrationStatus, UserId
from nexus.core.errors import DomainUnavailable, MalformedInput, NexusError
from nexus.core.ledger_rules import require_positive
from nexus.core.pricing import DomainQuote, PriceTable, quote
from nexus.core.repository_protocols import DomainRegistrationRepository
from nexus.infrastructure.providers.porkbun import PorkbunRegistrar, RegistrarReceipt
from nexus.services.wallet_ledger import WalletLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchResult:
    primary: DomainQuote
    suggestions: list[DomainQuote]


@dataclass(frozen=True)
class RegistrationResult:
    domain: str
    new_balance: Decimal
    cashback: Decimal
    registrar_reference: str
    simulated: bool


class DomainRegistrar:
    def __init__(
        self,
        registrar: PorkbunRegistrar,
        ledger: WalletLedger,
        registrations: DomainRegistrationRepository,
        settings: Settings,
    ):
        self.registrar = registrar
        self.ledger = ledger
        self.registrations = registrations
        self.prices = PriceTable(
            costs=dict(settings.tld_cost_table),
            default_cost=settings.default_tld_cost,
            margin=settings.domain_margin,
        )
        self.alternate_tlds = list(settings.alternate_tlds)
        self.max_suggestions = settings.max_domain_suggestions
        self.cashback = settings.domain_cashback

    async def _probe(self, domain: str) -> bool:
        try:
            return await self.registrar.check_availability(domain)
        except NexusError as e:
            logger.warning(
                f"Availability probe failed: {e.message}",
                extra={"domain": domain, "error_code": e.code},
            )
            return False

    async def search(self, raw_domain: str) -> SearchResult:
        domain, sld, tld = parse_domain(raw_domain)
        alternates = alternate_candidates(sld, tld, self.alternate_tlds)
        candidates = [(domain, tld), *alternates]

        flags = await asyncio.gather(*(self._probe(d) for d, _ in candidates))

        quotes = [
            quote(d, t, available, self.prices)
            for (d, t), available in zip(candidates, flags)
        ]
        return SearchResult(
            primary=quotes[0], suggestions=quotes[1:1 + self.max_suggestions],
        )

    async def register(
        self,
        user_id: UserId,
        raw_domain: str,
        final_price: Decimal | float | str,
        cost_price: Decimal | float | str,
    ) -> RegistrationResult:
        domain, _, _ = parse_domain(raw_domain)
        final = require_positive(final_price, "finalPrice")
        cost = require_positive(cost_price, "costPrice")
        if final < cost:
            raise MalformedInput("finalPrice cannot be lower than costPrice", "finalPrice")

        if await self.registrations.get(domain) is not None:
            raise DomainUnavailable(domain)
        await self._reserve(user_id, domain, final, cost)

        receipts: list[RegistrarReceipt] = []

        async def order() -> RegistrarReceipt:
            receipt = await self.registrar.register(domain, cost)
            receipts.append(receipt)
            return receipt

        async def persist(receipt: RegistrarReceipt):
            return await self.registrations.activate(
                domain, receipt.reference, receipt.nameservers,
            )

        try:
            result = await self.ledger.purchase(
                user_id,
                final,
                order,
                persist,
                cashback=self.cashback,
                kind=LedgerKind.DOMAIN_PURCHASE,
                description=f"Domain registration: {domain}",
                cashback_description=f"Cashback for registering {domain}",
                reference_id=domain,
            )
        except Exception as e:
            await self._abandon(user_id, domain, receipts, e)
            raise
        logger.info(
            "Domain registered",
            extra={"user_id": user_id, "domain": domain, "amount": final},
        )
        return RegistrationResult(
            domain=domain,
            new_balance=result.new_balance,
            cashback=self.cashback,
            registrar_reference=result.record.registrar_reference,
            simulated=self.registrar.simulated,
        )

    async def _reserve(
        self, user_id: UserId, domain: str, final: Decimal, cost: Decimal,
    ) -> None:
        created_at = datetime.now(timezone.utc)
        # raises DomainUnavailable when another order holds the name
        await self.registrations.add(
            user_id=user_id,
            domain_name=domain,
            status=RegistrationStatus.PENDING.value,
            purchase_price=final,
            cost_price=cost,
            registrar_reference=None,
            nameservers=[],
            expiry_date=registration_expiry(created_at),
            created_at=created_at,
        )

    async def _abandon(
        self,
        user_id: UserId,
        domain: str,
        receipts: list[RegistrarReceipt],
        error: Exception,
    ) -> None:
        if not receipts:
            await self.registrations.release(domain)
            logger.warning(
                f"Registration failed without a registrar receipt: {error}",
                extra={"user_id": user_id, "domain": domain},
            )
            return
        logger.error(
            f"Domain ordered but not recorded, reservation left pending: {error}",
            extra={
                "user_id": user_id,
                "domain": domain,
                "reference_id": receipts[0].reference,
            },
        )

    async def list_registrations(self, user_id: UserId) -> list:
        return await self.registrations.list_for_user(user_id)
