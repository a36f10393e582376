"""SQLAlchemy Declarative Base — shared by the ORM models and Alembic.

Invariants:
    - All models inherit from Base; Base.metadata is the schema Alembic diffs against
    - Constraints without an explicit name get a deterministic one from
      NAMING_CONVENTION, so migrations can drop/alter them by name
"""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)
