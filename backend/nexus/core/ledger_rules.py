"""Ledger Rules — pure validation and arithmetic for the wallet ledger.

Invariants:
    - Balance is derived (sum of signed amounts), never stored
    - Debits are stored as negative amounts, credits as positive; zero is never stored
    - check_sufficiency is PURE: raises, never mutates

Design Decisions:
    - Sign lives on the amount, kind is descriptive only: summing never
      needs to consult the kind column
"""

from dataclasses import dataclass
from decimal import Decimal

from nexus.core.errors import InsufficientFunds, MalformedInput
from nexus.core.money import ZERO, to_money


@dataclass(frozen=True)
class PurchaseOutcome:
    """Ledger-side result of a completed compound purchase."""
    pre_balance: Decimal
    cost: Decimal
    cashback: Decimal

    @property
    def new_balance(self) -> Decimal:
        return to_money(self.pre_balance - self.cost + self.cashback)


def require_positive(amount: Decimal | int | float | str, field: str = "amount") -> Decimal:
    """Validate and normalize a strictly positive amount."""
    try:
        value = to_money(amount)
    except ValueError:
        raise MalformedInput(f"{field} must be a number", field)
    if value <= ZERO:
        raise MalformedInput(f"{field} must be greater than zero", field)
    return value


def check_sufficiency(balance: Decimal, required: Decimal) -> None:
    """Raise InsufficientFunds when balance < required."""
    if balance < required:
        raise InsufficientFunds(balance=balance, required=required)


def signed_debit(amount: Decimal) -> Decimal:
    return -amount


def next_sequence(last_sequence: int | None) -> int:
    """Per-user monotonic sequence used as the conditional-write key."""
    return (last_sequence or 0) + 1
