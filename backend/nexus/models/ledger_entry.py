"""LedgerEntry ORM — append-only wallet ledger rows.

Invariants:
    - Rows are never updated or deleted (no update paths exist in the repository)
    - amount is signed and non-zero; Numeric(12, 2) keeps exact cents
    - (user_id, sequence) is unique: the conditional-write key for appends
    - At most one deposit per (user_id, reference_id) (partial unique index): a payment
      session can never be credited twice, however deliveries interleave

Design Decisions:
    - Per-user sequence instead of row locks: works on any store with a unique
      constraint and gives a monotonic order independent of clock skew
    - reference_id indexed with user_id: idempotency lookups for top-up webhooks
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint, DateTime, Index, Integer, Numeric, String, UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from nexus.db.base import Base

DEPOSIT_ONLY = "kind = 'deposit'"


class LedgerEntry(Base):
    """Immutable signed-amount wallet entry."""
    __tablename__ = "ledger_entries"
    __table_args__ = (
        UniqueConstraint("user_id", "sequence", name="uq_ledger_user_sequence"),
        CheckConstraint("amount <> 0", name="ck_ledger_amount_nonzero"),
        Index("ix_ledger_user_reference", "user_id", "kind", "reference_id"),
        Index(
            "uq_ledger_deposit_reference", "user_id", "reference_id", unique=True,
            postgresql_where=text(DEPOSIT_ONLY), sqlite_where=text(DEPOSIT_ONLY),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    kind: Mapped[str] = mapped_column(String(30), nullable=False)
    description: Mapped[str] = mapped_column(
        String(500), nullable=False, default="",
    )
    reference_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
