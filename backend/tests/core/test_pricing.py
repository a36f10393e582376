"""Domain Pricing — verifies cost-table lookups and the fixed margin."""

from decimal import Decimal

from nexus.config import DEFAULT_TLD_COSTS
from nexus.core.pricing import PriceTable, quote

TABLE = PriceTable(
    costs=DEFAULT_TLD_COSTS, default_cost=Decimal("15.00"), margin=Decimal("15.00"),
)


def test_known_tld_price():
    assert TABLE.cost("com") == Decimal("11.08")
    assert TABLE.final_price("com") == Decimal("26.08")


def test_unknown_tld_uses_default_cost():
    assert TABLE.cost("xyz") == Decimal("15.00")
    assert TABLE.final_price("xyz") == Decimal("30.00")


def test_quote_to_dict_uses_snake_case_numbers():
    q = quote("mysite.pt", "pt", True, TABLE)
    assert q.to_dict() == {
        "domain": "mysite.pt",
        "tld": "pt",
        "cost_price": 12.0,
        "final_price": 27.0,
        "available": True,
    }
