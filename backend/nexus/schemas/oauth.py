"""OAuth Schemas — authorize response and connection management payloads.

Invariants:
    - No schema here carries an access or refresh token
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AuthorizeResponse(BaseModel):
    auth_url: str


class SetResourceRequest(BaseModel):
    resource_id: str = Field(min_length=1, max_length=255)
    resource_name: str | None = Field(None, max_length=255)

    @field_validator("resource_id")
    @classmethod
    def strip_resource_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("resource_id cannot be empty or whitespace")
        return v


class ConnectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    provider: str
    resource_id: str | None
    resource_name: str | None
    account_email: str | None
    is_active: bool
    pending_selection: bool


class SubscriptionResponse(BaseModel):
    success: bool
    message: str
    current_subscriptions: list[dict]
