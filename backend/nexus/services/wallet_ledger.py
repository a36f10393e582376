"""Wallet Ledger — balance, credit, debit and the compound purchase saga.

Invariants:
    - Balance is never stored: every operation reads Σ amount fresh
    - Every append uses sequence = last + 1; a concurrent writer makes the store
      reject one of them (unique user_id + sequence)
    - A debit never brings the balance below zero at the time of its conditional write
    - purchase: insufficient funds → zero entries written and no side effect run
    - purchase success → exactly two entries (debit + cashback)
    - purchase side-effect failure → refund credit (when compensation enabled),
      original error re-raised

Design Decisions:
    - Conflicting debits surface as ConcurrencyError (409): the caller decides
      whether the purchase still makes sense at the new balance
    - Conflicting credits are retried internally: a credit is always safe to
      re-sequence and must not be lost (top-ups, cashback, refunds)
    - A referenced deposit is looked up again before each retry: the writer
      that won the race may have been a redelivery of the same payment
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Generic, TypeVar

from nexus.config import Settings
from nexus.core.domain_types import LedgerKind, UserId
from nexus.core.errors import ConcurrencyError, DuplicateLedgerReference
from nexus.core.ledger_rules import (
    PurchaseOutcome, check_sufficiency, next_sequence, require_positive,
    signed_debit,
)
from nexus.core.money import ZERO, to_money
from nexus.core.repository_protocols import LedgerEntryLike, LedgerRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

_CREDIT_KINDS = frozenset({
    LedgerKind.DEPOSIT, LedgerKind.CASHBACK, LedgerKind.REFUND, LedgerKind.ADJUSTMENT,
})


@dataclass(frozen=True)
class PurchaseResult(Generic[R]):
    outcome: PurchaseOutcome
    record: R
    debit: LedgerEntryLike
    cashback: LedgerEntryLike | None

    @property
    def new_balance(self) -> Decimal:
        return self.outcome.new_balance


class WalletLedger:
    """Single-currency additive ledger over a LedgerRepository."""

    def __init__(self, entries: LedgerRepository, settings: Settings):
        self.entries = entries
        self.compensate = settings.ledger_compensate_failed_purchases
        self.credit_retries = settings.ledger_credit_retries

    async def balance(self, user_id: UserId) -> Decimal:
        total, _ = await self.entries.balance_and_sequence(user_id)
        return total

    async def history(
        self, user_id: UserId, limit: int = 50, offset: int = 0,
    ) -> list[LedgerEntryLike]:
        return await self.entries.list_entries(user_id, limit, offset)

    async def find_entry(
        self, user_id: UserId, kind: LedgerKind, reference_id: str,
    ) -> LedgerEntryLike | None:
        return await self.entries.find_by_reference(user_id, kind, reference_id)

    async def credit(
        self,
        user_id: UserId,
        amount: Decimal | int | float | str,
        kind: LedgerKind,
        description: str,
        reference_id: str | None = None,
    ) -> LedgerEntryLike:
        value = require_positive(amount)
        if kind not in _CREDIT_KINDS:
            raise ValueError(f"{kind.value} is not a credit kind")

        attempts = self.credit_retries + 1
        for attempt in range(attempts):
            _, last = await self.entries.balance_and_sequence(user_id)
            try:
                entry = await self.entries.append(
                    user_id, next_sequence(last), value, kind, description, reference_id,
                )
            except ConcurrencyError:
                if kind is LedgerKind.DEPOSIT and reference_id is not None:
                    existing = await self.entries.find_by_reference(
                        user_id, kind, reference_id,
                    )
                    if existing is not None:
                        raise DuplicateLedgerReference(reference_id)
                if attempt == attempts - 1:
                    logger.error(
                        "Credit abandoned after repeated sequence conflicts",
                        extra={"user_id": user_id, "amount": value, "attempt": attempt + 1},
                    )
                    raise
                continue
            logger.info(
                f"Ledger credit ({kind.value})",
                extra={"user_id": user_id, "amount": value, "reference_id": reference_id},
            )
            return entry

    async def debit(
        self,
        user_id: UserId,
        amount: Decimal | int | float | str,
        kind: LedgerKind,
        description: str,
        reference_id: str | None = None,
    ) -> LedgerEntryLike:
        value = require_positive(amount)
        entry, _ = await self._debit(user_id, value, kind, description, reference_id)
        return entry

    async def _debit(
        self,
        user_id: UserId,
        value: Decimal,
        kind: LedgerKind,
        description: str,
        reference_id: str | None,
    ) -> tuple[LedgerEntryLike, Decimal]:
        """Sufficiency check + conditional append; returns (entry, pre-balance)."""
        balance, last = await self.entries.balance_and_sequence(user_id)
        check_sufficiency(balance, value)
        entry = await self.entries.append(
            user_id, next_sequence(last), signed_debit(value), kind,
            description, reference_id,
        )
        logger.info(
            f"Ledger debit ({kind.value})",
            extra={"user_id": user_id, "amount": value, "reference_id": reference_id},
        )
        return entry, balance

    async def purchase(
        self,
        user_id: UserId,
        cost: Decimal | int | float | str,
        side_effect: Callable[[], Awaitable[T]],
        on_success: Callable[[T], Awaitable[R]],
        *,
        cashback: Decimal | int | float | str = ZERO,
        kind: LedgerKind = LedgerKind.DOMAIN_PURCHASE,
        description: str,
        cashback_description: str = "",
        reference_id: str | None = None,
    ) -> PurchaseResult[R]:
        """Debit → side effect → persist record → cashback.

        on_success receives the side effect's result and persists whatever
        record the purchase produced; its return value is carried back in the
        PurchaseResult.
        """
        value = require_positive(cost, "cost")
        cashback_value = to_money(cashback)

        debit_entry, pre_balance = await self._debit(
            user_id, value, kind, description, reference_id,
        )

        try:
            outcome: Any = await side_effect()
        except Exception as e:
            logger.error(
                f"Purchase side effect failed after debit: {e}",
                extra={"user_id": user_id, "amount": value, "reference_id": reference_id},
            )
            if self.compensate:
                await self.credit(
                    user_id, value, LedgerKind.REFUND,
                    f"Refund: {description}", reference_id,
                )
            raise

        record = await on_success(outcome)

        cashback_entry = None
        if cashback_value > ZERO:
            cashback_entry = await self.credit(
                user_id, cashback_value, LedgerKind.CASHBACK,
                cashback_description or f"Cashback: {description}", reference_id,
            )

        return PurchaseResult(
            outcome=PurchaseOutcome(
                pre_balance=pre_balance, cost=value, cashback=cashback_value,
            ),
            record=record,
            debit=debit_entry,
            cashback=cashback_entry,
        )
