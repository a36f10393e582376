"""Identity Client — resolves an opaque bearer credential to a stable user id.

Invariants:
    - Exactly one outbound call per verification: GET {identity_url}/auth/v1/user
    - Non-2xx or a body without an id → InvalidCredential (401)
    - Network failure → UpstreamProviderError (502): an outage is not a bad token
    - The credential itself never appears in logs or error messages

Design Decisions:
    - No retry: a verification sits in front of every request and the caller
      retries the whole request anyway
"""

import logging

import httpx
from pydantic import ValidationError

from nexus.config import Settings
from nexus.core.domain_types import UserId
from nexus.core.errors import InvalidCredential, UpstreamProviderError
from nexus.schemas.provider_responses import IdentityUser

logger = logging.getLogger(__name__)

PROVIDER = "identity"


class IdentityClient:
    """Verifies bearer credentials against the hosted identity provider."""

    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        self.client = client
        self.url = f"{settings.identity_url.rstrip('/')}/auth/v1/user"
        self.anon_key = settings.identity_anon_key

    async def verify(self, token: str) -> UserId:
        if not token:
            raise InvalidCredential()
        try:
            response = await self.client.get(
                self.url,
                headers={
                    "Authorization": f"Bearer {token}",
                    "apikey": self.anon_key,
                },
            )
        except httpx.HTTPError as e:
            logger.error(
                f"Identity provider unreachable ({type(e).__name__})",
                extra={"provider": PROVIDER},
            )
            raise UpstreamProviderError(PROVIDER, "identity provider unreachable")

        if response.is_error:
            logger.info(
                "Credential rejected by identity provider",
                extra={"provider": PROVIDER, "status_code": response.status_code},
            )
            raise InvalidCredential()
        try:
            user = IdentityUser.model_validate(response.json())
        except (ValueError, ValidationError):
            raise InvalidCredential()
        return UserId(user.id)
