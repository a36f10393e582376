"""Unique deposit reference — one ledger deposit per payment session.

Revision ID: 002_deposit_reference
Revises: 001_initial
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "002_deposit_reference"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

DEPOSIT_ONLY = "kind = 'deposit'"


def upgrade() -> None:
    op.create_index(
        "uq_ledger_deposit_reference",
        "ledger_entries",
        ["user_id", "reference_id"],
        unique=True,
        postgresql_where=sa.text(DEPOSIT_ONLY),
        sqlite_where=sa.text(DEPOSIT_ONLY),
    )


def downgrade() -> None:
    op.drop_index("uq_ledger_deposit_reference", table_name="ledger_entries")
