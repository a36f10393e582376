"""Domain Routes — priced availability search, wallet-funded registration, listing.

Invariants:
    - All routes require a verified bearer credential
    - Insufficient funds → 400 {error, balance, required} (global handler)
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from nexus.api.dependencies import CurrentUser, get_domain_registrar
from nexus.schemas.domain import (
    DomainRegisterRequest, DomainRegisterResponse, DomainRegistrationResponse,
    DomainSearchRequest, DomainSearchResponse,
)
from nexus.services.domain_registrar import DomainRegistrar

router = APIRouter(prefix="/api/v1/domains", tags=["domains"])

RegistrarDep = Annotated[DomainRegistrar, Depends(get_domain_registrar)]


@router.post("/search", response_model=DomainSearchResponse)
async def search_domain(
    body: DomainSearchRequest, user_id: CurrentUser, registrar: RegistrarDep,
):
    result = await registrar.search(body.domain)
    return {
        **result.primary.to_dict(),
        "suggestions": [q.to_dict() for q in result.suggestions],
    }


@router.post("/register", response_model=DomainRegisterResponse)
async def register_domain(
    body: DomainRegisterRequest, user_id: CurrentUser, registrar: RegistrarDep,
):
    result = await registrar.register(
        user_id, body.domain, body.final_price, body.cost_price,
    )
    return DomainRegisterResponse(
        domain=result.domain,
        new_balance=float(result.new_balance),
        cashback=float(result.cashback),
        simulated=result.simulated,
    )


@router.get("", response_model=list[DomainRegistrationResponse])
async def list_domains(user_id: CurrentUser, registrar: RegistrarDep):
    return await registrar.list_registrations(user_id)
