"""Domain Schemas — search and registration payloads.

Invariants:
    - Register accepts the dashboard's camelCase keys (finalPrice, costPrice)
    - Prices arrive as Decimal (JSON numbers are converted through str, never float math)
    - Money leaves as JSON numbers with two decimals
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class DomainSearchRequest(BaseModel):
    domain: str = Field(max_length=300)


class DomainQuoteResponse(BaseModel):
    domain: str
    tld: str
    available: bool
    cost_price: float
    final_price: float


class DomainSearchResponse(DomainQuoteResponse):
    suggestions: list[DomainQuoteResponse]


class DomainRegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    domain: str = Field(max_length=300)
    final_price: Decimal = Field(alias="finalPrice")
    cost_price: Decimal = Field(alias="costPrice")


class DomainRegisterResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    domain: str
    new_balance: float = Field(alias="newBalance")
    cashback: float
    simulated: bool = False


class DomainRegistrationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    domain_name: str
    status: str
    purchase_price: float
    cost_price: float
    registrar_reference: str | None
    nameservers: list[str]
    expiry_date: datetime
    created_at: datetime
