"""Wallet Ledger — verifies balance derivation, conditional appends and the purchase saga.

Invariants:
    - balance == Σ amount, read fresh
    - Insufficient funds → zero entries written, side effect never run
    - Successful purchase → exactly two new entries (debit + cashback)
    - Side-effect failure keeps the debit by default; with compensation enabled
      it writes a refund credit. The original error is re-raised either way
    - A duplicate (user_id, sequence) write → ConcurrencyError; credits retry it
    - Under random interleavings of concurrent credits and debits the sequence
      stays gapless, balance == Σ entries, and no running balance dips below 0
"""

import asyncio
import random
from decimal import Decimal

import pytest

from nexus.core.domain_types import LedgerKind, UserId
from nexus.core.errors import ConcurrencyError, InsufficientFunds, UpstreamProviderError
from nexus.infrastructure.repositories import SqlLedgerRepository
from nexus.services.wallet_ledger import WalletLedger

from tests.services.mock_providers import make_settings

USER = UserId("user-1")


async def test_balance_of_new_user_is_zero(ledger):
    assert await ledger.balance(USER) == Decimal("0.00")


async def test_credit_then_debit(ledger):
    await ledger.credit(USER, "30.00", LedgerKind.DEPOSIT, "Top-up")
    await ledger.debit(USER, "12.50", LedgerKind.ADJUSTMENT, "Manual fix")
    assert await ledger.balance(USER) == Decimal("17.50")


async def test_entries_are_sequenced_per_user(ledger):
    await ledger.credit(USER, 10, LedgerKind.DEPOSIT, "a")
    await ledger.credit(UserId("user-2"), 10, LedgerKind.DEPOSIT, "b")
    await ledger.credit(USER, 5, LedgerKind.DEPOSIT, "c")
    entries = await ledger.history(USER)
    assert [e.sequence for e in entries] == [2, 1]
    assert [e.amount for e in entries] == [Decimal("5.00"), Decimal("10.00")]


async def test_debit_beyond_balance_writes_nothing(ledger):
    await ledger.credit(USER, "10.00", LedgerKind.DEPOSIT, "Top-up")
    with pytest.raises(InsufficientFunds) as exc:
        await ledger.debit(USER, "10.01", LedgerKind.ADJUSTMENT, "too much")
    assert exc.value.balance == Decimal("10.00")
    assert len(await ledger.history(USER)) == 1


async def test_debit_kind_cannot_be_credited(ledger):
    with pytest.raises(ValueError):
        await ledger.credit(USER, "5.00", LedgerKind.DOMAIN_PURCHASE, "nope")


async def test_duplicate_sequence_is_a_concurrency_error(ledger_repo):
    await ledger_repo.append(USER, 1, Decimal("5.00"), LedgerKind.DEPOSIT, "first", None)
    with pytest.raises(ConcurrencyError):
        await ledger_repo.append(USER, 1, Decimal("-5.00"), LedgerKind.ADJUSTMENT, "racing", None)
    balance, last = await ledger_repo.balance_and_sequence(USER)
    assert (balance, last) == (Decimal("5.00"), 1)


async def test_find_entry_by_reference(ledger):
    await ledger.credit(USER, "20.00", LedgerKind.DEPOSIT, "Top-up", "cs_1")
    assert (await ledger.find_entry(USER, LedgerKind.DEPOSIT, "cs_1")).amount == Decimal("20.00")
    assert await ledger.find_entry(USER, LedgerKind.DEPOSIT, "cs_2") is None


# -- Purchase saga -------------------------------------------------------------


async def _record(outcome):
    return {"persisted": outcome}


async def test_purchase_success_writes_debit_and_cashback(ledger):
    await ledger.credit(USER, "30.00", LedgerKind.DEPOSIT, "Top-up")

    async def side_effect():
        return "order-1"

    result = await ledger.purchase(
        USER, "27.00", side_effect, _record,
        cashback="15.00", description="Domain registration: mysite.pt",
        reference_id="mysite.pt",
    )
    assert result.new_balance == Decimal("18.00")
    assert result.record == {"persisted": "order-1"}
    assert await ledger.balance(USER) == Decimal("18.00")

    entries = await ledger.history(USER)
    assert len(entries) == 3
    assert [(e.kind, e.amount) for e in entries[:2]] == [
        ("cashback", Decimal("15.00")),
        ("domain_purchase", Decimal("-27.00")),
    ]


async def test_purchase_without_funds_runs_nothing(ledger):
    await ledger.credit(USER, "10.00", LedgerKind.DEPOSIT, "Top-up")
    ran = []

    async def side_effect():
        ran.append(True)

    with pytest.raises(InsufficientFunds):
        await ledger.purchase(
            USER, "27.00", side_effect, _record, cashback="15.00", description="x",
        )
    assert ran == []
    assert len(await ledger.history(USER)) == 1


async def test_failed_side_effect_is_refunded(ledger_repo):
    ledger = WalletLedger(ledger_repo, make_settings(ledger_compensate_failed_purchases=True))
    await ledger.credit(USER, "30.00", LedgerKind.DEPOSIT, "Top-up")

    async def side_effect():
        raise UpstreamProviderError("porkbun", "registrar down")

    with pytest.raises(UpstreamProviderError):
        await ledger.purchase(
            USER, "27.00", side_effect, _record, cashback="15.00", description="x",
        )
    assert await ledger.balance(USER) == Decimal("30.00")
    kinds = [e.kind for e in await ledger.history(USER)]
    assert kinds == ["refund", "domain_purchase", "deposit"]


async def test_failed_side_effect_keeps_debit_by_default(ledger):
    await ledger.credit(USER, "30.00", LedgerKind.DEPOSIT, "Top-up")

    async def side_effect():
        raise UpstreamProviderError("porkbun", "registrar down")

    with pytest.raises(UpstreamProviderError):
        await ledger.purchase(USER, "27.00", side_effect, _record, description="x")
    assert await ledger.balance(USER) == Decimal("3.00")
    kinds = [e.kind for e in await ledger.history(USER)]
    assert kinds == ["domain_purchase", "deposit"]


async def test_zero_cashback_writes_single_entry(ledger):
    await ledger.credit(USER, "30.00", LedgerKind.DEPOSIT, "Top-up")

    async def side_effect():
        return None

    result = await ledger.purchase(USER, "5.00", side_effect, _record, description="x")
    assert result.cashback is None
    assert len(await ledger.history(USER)) == 2


# -- Conflict handling with a racing writer -------------------------------------


class _RacingRepo:
    """Wraps a repository; the first N appends lose the race."""

    def __init__(self, inner, losses: int):
        self.inner = inner
        self.losses = losses
        self.attempts = 0

    async def balance_and_sequence(self, user_id):
        return await self.inner.balance_and_sequence(user_id)

    async def append(self, *args):
        self.attempts += 1
        if self.attempts <= self.losses:
            raise ConcurrencyError("lost the race")
        return await self.inner.append(*args)

    async def list_entries(self, *args):
        return await self.inner.list_entries(*args)

    async def find_by_reference(self, *args):
        return await self.inner.find_by_reference(*args)


async def test_credit_retries_after_conflict(ledger_repo):
    repo = _RacingRepo(ledger_repo, losses=2)
    ledger = WalletLedger(repo, make_settings(ledger_credit_retries=3))
    await ledger.credit(USER, "10.00", LedgerKind.DEPOSIT, "Top-up")
    assert repo.attempts == 3
    assert await ledger.balance(USER) == Decimal("10.00")


async def test_credit_gives_up_after_retries(ledger_repo):
    repo = _RacingRepo(ledger_repo, losses=10)
    ledger = WalletLedger(repo, make_settings(ledger_credit_retries=1))
    with pytest.raises(ConcurrencyError):
        await ledger.credit(USER, "10.00", LedgerKind.DEPOSIT, "Top-up")
    assert repo.attempts == 2


async def test_debit_conflict_is_not_retried(ledger_repo):
    await ledger_repo.append(USER, 1, Decimal("30.00"), LedgerKind.DEPOSIT, "seed", None)
    repo = _RacingRepo(ledger_repo, losses=1)
    ledger = WalletLedger(repo, make_settings())
    with pytest.raises(ConcurrencyError):
        await ledger.debit(USER, "27.00", LedgerKind.DOMAIN_PURCHASE, "x")
    assert repo.attempts == 1
    assert await ledger.balance(USER) == Decimal("30.00")


# -- Random interleavings on separate connections ------------------------------


def _random_batches(rng: random.Random, rounds: int) -> list[list[tuple[str, Decimal]]]:
    """Rounds of 1-4 concurrent operations, debits twice as likely as credits."""
    return [
        [
            (rng.choice(["credit", "debit", "debit"]), Decimal(rng.randint(1, 4000)) / 100)
            for _ in range(rng.randint(1, 4))
        ]
        for _ in range(rounds)
    ]


@pytest.mark.parametrize("seed", range(8))
async def test_random_interleavings_keep_ledger_consistent(racing_session_factory, seed):
    settings = make_settings(ledger_credit_retries=5)
    applied: list[Decimal] = []
    refused: list[InsufficientFunds] = []

    async def run(op: str, amount: Decimal):
        async with racing_session_factory() as session:
            ledger = WalletLedger(SqlLedgerRepository(session), settings)
            try:
                if op == "credit":
                    entry = await ledger.credit(USER, amount, LedgerKind.DEPOSIT, "fuzz")
                else:
                    entry = await ledger.debit(USER, amount, LedgerKind.ADJUSTMENT, "fuzz")
            except InsufficientFunds as e:
                refused.append(e)
                return
            except ConcurrencyError:
                return
            applied.append(entry.amount)

    for batch in _random_batches(random.Random(seed), rounds=15):
        await asyncio.gather(*(run(op, amount) for op, amount in batch))

    async with racing_session_factory() as session:
        repo = SqlLedgerRepository(session)
        balance, last = await repo.balance_and_sequence(USER)
        entries = sorted(await repo.list_entries(USER, 1000, 0), key=lambda e: e.sequence)

    assert [e.sequence for e in entries] == list(range(1, last + 1))
    assert balance == sum((e.amount for e in entries), Decimal("0.00"))
    assert sorted(applied) == sorted(e.amount for e in entries)
    assert all(e.balance < e.required for e in refused)
    running = Decimal("0.00")
    for entry in entries:
        running += entry.amount
        assert running >= 0
    assert balance >= 0
