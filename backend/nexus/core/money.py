"""Money — exact two-decimal currency arithmetic.

Invariants:
    - Every amount leaving this module is a Decimal quantized to 0.01
    - Floats are converted through str() so 0.1 stays 0.1
    - ROUND_HALF_UP everywhere (currency convention, not banker's rounding)
    - Amounts outside Numeric(12, 2) (|x| > MAX_AMOUNT) are rejected as ValueError
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
MAX_AMOUNT = Decimal("9999999999.99")


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Coerce value to a two-decimal Decimal. Raises ValueError on garbage."""
    if isinstance(value, bool):
        raise ValueError("boolean is not a monetary amount")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"invalid monetary amount: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"invalid monetary amount: {value!r}")
    if abs(amount) > MAX_AMOUNT:
        raise ValueError(f"monetary amount out of range: {value!r}")
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValueError(f"invalid monetary amount: {value!r}") from e


def round2(value: Decimal | int | float | str) -> Decimal:
    """Alias used by pricing code: round to cents."""
    return to_money(value)


def money_sum(amounts) -> Decimal:
    """Exact sum of amounts (ZERO for an empty iterable)."""
    total = ZERO
    for amount in amounts:
        total += to_money(amount)
    return to_money(total)


def divide_minor_units(value: int | str | None, divisor: int) -> Decimal:
    """Convert smallest-unit integers (cents, micros) to currency."""
    if value in (None, ""):
        return ZERO
    return to_money(Decimal(str(value)) / Decimal(divisor))
