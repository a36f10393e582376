"""Wallet Schemas — balance, ledger history and top-up payloads."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class BalanceResponse(BaseModel):
    balance: float
    currency: str


class LedgerEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sequence: int
    amount: float
    kind: str
    description: str
    reference_id: str | None
    created_at: datetime


class TopupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: Decimal
    success_url: str | None = Field(None, alias="successUrl", max_length=2000)
    cancel_url: str | None = Field(None, alias="cancelUrl", max_length=2000)


class TopupResponse(BaseModel):
    url: str | None
    session_id: str
