"""ProviderConnection ORM — per-user OAuth grant plus the selected downstream resource.

Invariants:
    - One row per (user_id, provider); reconnecting overwrites the tokens
    - resource_id NULL means "pending selection" — not usable by the aggregator
    - Tokens are sensitive: never serialized into API responses or logs
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from nexus.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProviderConnection(Base):
    """Stored authorization grant for one provider."""
    __tablename__ = "provider_connections"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_connection_user_provider"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    provider: Mapped[str] = mapped_column(String(30), nullable=False)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    token_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    resource_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True,
    )
    resource_name: Mapped[str | None] = mapped_column(
        String(255), nullable=True,
    )
    account_email: Mapped[str | None] = mapped_column(
        String(255), nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    @property
    def pending_selection(self) -> bool:
        return self.resource_id is None
