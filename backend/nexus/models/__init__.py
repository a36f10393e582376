"""ORM Models — SQLAlchemy declarative models for all persisted entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Every table is keyed by user: ledger by user+sequence, connections by
      user+provider, registrations by domain

Design Decisions:
    - One file per entity for locality
    - All models imported here so Base.metadata is complete before create_all
      or alembic autogenerate runs
"""

from nexus.models.ledger_entry import LedgerEntry  # noqa: F401
from nexus.models.provider_connection import ProviderConnection  # noqa: F401
from nexus.models.domain_registration import DomainRegistration  # noqa: F401
