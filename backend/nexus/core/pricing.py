"""Domain Pricing — resale quotes from a static cost table plus a fixed margin.

Invariants:
    - final_price = round2(cost(tld) + margin)
    - Unknown TLDs cost the configured default
    - Quotes are derived values, never persisted
"""

from dataclasses import dataclass
from decimal import Decimal

from nexus.core.money import round2, to_money


@dataclass(frozen=True)
class PriceTable:
    costs: dict[str, Decimal]
    default_cost: Decimal
    margin: Decimal

    def cost(self, tld: str) -> Decimal:
        return to_money(self.costs.get(tld, self.default_cost))

    def final_price(self, tld: str) -> Decimal:
        return round2(self.cost(tld) + self.margin)


@dataclass(frozen=True)
class DomainQuote:
    domain: str
    tld: str
    cost_price: Decimal
    final_price: Decimal
    available: bool

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "tld": self.tld,
            "cost_price": float(self.cost_price),
            "final_price": float(self.final_price),
            "available": self.available,
        }


def quote(domain: str, tld: str, available: bool, table: PriceTable) -> DomainQuote:
    return DomainQuote(
        domain=domain,
        tld=tld,
        cost_price=table.cost(tld),
        final_price=table.final_price(tld),
        available=available,
    )
