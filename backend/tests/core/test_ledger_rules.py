"""Ledger Rules — verifies pure ledger validation and arithmetic.

Invariants:
    - check_sufficiency raises InsufficientFunds carrying balance and required
    - require_positive rejects zero, negatives and non-numbers as MalformedInput
    - Sequences start at 1 and increase by exactly 1
"""

from decimal import Decimal

import pytest

from nexus.core.errors import InsufficientFunds, MalformedInput
from nexus.core.ledger_rules import (
    PurchaseOutcome, check_sufficiency, next_sequence,
    require_positive, signed_debit,
)


def test_check_sufficiency_allows_exact_balance():
    check_sufficiency(Decimal("27.00"), Decimal("27.00"))


def test_check_sufficiency_raises_with_amounts():
    with pytest.raises(InsufficientFunds) as exc:
        check_sufficiency(Decimal("10.00"), Decimal("27.00"))
    assert exc.value.balance == Decimal("10.00")
    assert exc.value.required == Decimal("27.00")
    assert exc.value.http_status == 400


@pytest.mark.parametrize("amount", [0, "0.00", "-5", "0.004", "abc"])
def test_require_positive_rejects(amount):
    with pytest.raises(MalformedInput) as exc:
        require_positive(amount, "finalPrice")
    assert exc.value.field == "finalPrice"


def test_require_positive_normalizes():
    assert require_positive(27) == Decimal("27.00")
    assert require_positive("0.005") == Decimal("0.01")


def test_signed_debit_is_negative():
    assert signed_debit(Decimal("27.00")) == Decimal("-27.00")


def test_next_sequence():
    assert next_sequence(None) == 1
    assert next_sequence(0) == 1
    assert next_sequence(41) == 42


def test_purchase_outcome_new_balance():
    outcome = PurchaseOutcome(
        pre_balance=Decimal("30.00"), cost=Decimal("27.00"), cashback=Decimal("15.00"),
    )
    assert outcome.new_balance == Decimal("18.00")
