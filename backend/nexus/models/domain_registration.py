"""DomainRegistration ORM — domains bought through the wallet.

Invariants:
    - domain_name is unique (keyed by domain)
    - Reserved as pending before the wallet debit, so a concurrent order for the
      same domain fails before any money moves
    - Active only once the registrar succeeded; a reservation whose order never
      reached the registrar is deleted
    - expiry_date = created_at + 1 year (fixed renewal term)
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, JSON, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from nexus.db.base import Base


class DomainRegistration(Base):
    """Registered domain owned by a user."""
    __tablename__ = "domain_registrations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    domain_name: Mapped[str] = mapped_column(
        String(253), nullable=False, unique=True,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="active",
    )
    purchase_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    cost_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    registrar_reference: Mapped[str | None] = mapped_column(
        String(255), nullable=True,
    )
    nameservers: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list,
    )
    expiry_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
