"""Connection Routes — list, resource selection and disconnect for provider connections.

Invariants:
    - Every route is scoped to the authenticated caller's own connections
    - Responses never include tokens
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from nexus.api.dependencies import CurrentUser, get_oauth_connector
from nexus.schemas.oauth import ConnectionResponse, SetResourceRequest
from nexus.services.oauth_connector import OAuthConnector, parse_provider_name

router = APIRouter(prefix="/api/v1/connections", tags=["connections"])

ConnectorDep = Annotated[OAuthConnector, Depends(get_oauth_connector)]


@router.get("", response_model=list[ConnectionResponse])
async def list_connections(user_id: CurrentUser, connector: ConnectorDep):
    return await connector.list_connections(user_id)


@router.put("/{provider}/resource", response_model=ConnectionResponse)
async def set_resource(
    provider: str,
    body: SetResourceRequest,
    user_id: CurrentUser,
    connector: ConnectorDep,
):
    """Complete a pending selection (or switch the selected account)."""
    return await connector.set_resource(
        user_id, parse_provider_name(provider), body.resource_id, body.resource_name,
    )


@router.delete("/{provider}", status_code=status.HTTP_204_NO_CONTENT)
async def disconnect(provider: str, user_id: CurrentUser, connector: ConnectorDep):
    await connector.disconnect(user_id, parse_provider_name(provider))
