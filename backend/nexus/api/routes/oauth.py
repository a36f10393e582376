"""OAuth Routes — authorize URL issuance and the provider callback redirect.

Invariants:
    - /authorize requires a verified bearer credential
    - /callback is unauthenticated (the browser arrives from the provider) and
      ALWAYS answers 302, never an error page
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse

from nexus.api.dependencies import CurrentUser, SettingsDep, get_oauth_connector
from nexus.core.errors import MalformedInput
from nexus.core.oauth_redirects import error_redirect
from nexus.schemas.oauth import AuthorizeResponse
from nexus.services.oauth_connector import OAuthConnector, parse_provider_name

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/oauth", tags=["oauth"])

ConnectorDep = Annotated[OAuthConnector, Depends(get_oauth_connector)]


@router.get("/{provider}/authorize", response_model=AuthorizeResponse)
async def authorize(
    provider: str,
    user_id: CurrentUser,
    connector: ConnectorDep,
    return_origin: str | None = Query(None, max_length=500),
):
    """Build the provider consent URL carrying a signed state."""
    url = connector.issue_auth_url(
        user_id, return_origin, parse_provider_name(provider),
    )
    return AuthorizeResponse(auth_url=url)


@router.get("/{provider}/callback")
async def callback(
    provider: str,
    connector: ConnectorDep,
    settings: SettingsDep,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
):
    """Provider redirect target: exchange, discover, persist, redirect."""
    try:
        parsed = parse_provider_name(provider)
    except MalformedInput as e:
        return RedirectResponse(
            error_redirect(None, settings.oauth_fallback_origin, provider, e.message),
            status_code=status.HTTP_302_FOUND,
        )
    url = await connector.handle_callback(
        parsed, code, state, error_description or error,
    )
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)
