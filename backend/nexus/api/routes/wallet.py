"""Wallet Routes — balance, ledger history and checkout-based top-up."""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query

from nexus.api.dependencies import (
    CurrentUser, SettingsDep, get_wallet_ledger, get_wallet_topup,
)
from nexus.schemas.wallet import (
    BalanceResponse, LedgerEntryResponse, TopupRequest, TopupResponse,
)
from nexus.services.wallet_ledger import WalletLedger
from nexus.services.wallet_topup import WalletTopup

router = APIRouter(prefix="/api/v1/wallet", tags=["wallet"])

LedgerDep = Annotated[WalletLedger, Depends(get_wallet_ledger)]


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(user_id: CurrentUser, ledger: LedgerDep, settings: SettingsDep):
    balance = await ledger.balance(user_id)
    return BalanceResponse(
        balance=float(balance), currency=settings.wallet_currency.upper(),
    )


@router.get("/entries", response_model=list[LedgerEntryResponse])
async def list_entries(
    user_id: CurrentUser,
    ledger: LedgerDep,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Ledger history, newest first."""
    return await ledger.history(user_id, limit, offset)


@router.post("/topup", response_model=TopupResponse)
async def create_topup(
    body: TopupRequest,
    user_id: CurrentUser,
    topup: Annotated[WalletTopup, Depends(get_wallet_topup)],
    origin: str | None = Header(None),
):
    link = await topup.create_checkout(
        user_id, body.amount, body.success_url, body.cancel_url, origin,
    )
    return TopupResponse(url=link.url, session_id=link.session_id)
