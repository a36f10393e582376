"""Database — async engine, per-request sessions and storage error mapping.

Invariants:
    - One engine per process, created in the app lifespan from Settings
    - A session that raises is rolled back before the error leaves get_db
    - IntegrityError passes through untouched: repositories own it (ledger
      sequence races → ConcurrencyError, duplicate domain → DomainUnavailable)
    - Every other storage failure becomes DatabaseError (generic 500)

Design Decisions:
    - expire_on_commit=False: services read entries after the repository commits
    - SQLite URLs skip pool sizing (tests and local runs use aiosqlite)
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)

from nexus.config import Settings
from nexus.core.errors import DatabaseError

logger = logging.getLogger(__name__)


def storage_error(exc: SQLAlchemyError) -> DatabaseError:
    """Translate a driver/ORM failure into the generic DatabaseError."""
    if isinstance(exc, OperationalError):
        return DatabaseError("Storage unavailable", "connect")
    return DatabaseError("Storage operation failed", "query")


class DatabaseSessionManager:
    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        engine_kwargs: dict = {"pool_pre_ping": True}
        if not database_url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600,
            )
        self.engine = create_async_engine(database_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "DatabaseSessionManager":
        return cls(
            settings.database_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        session = self._session_factory()
        try:
            yield session
        except IntegrityError:
            await session.rollback()
            raise
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Storage failure: {type(e).__name__}: {e}")
            raise storage_error(e)
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """SELECT 1 through a fresh session; False instead of raising."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
        except (DatabaseError, SQLAlchemyError, OSError) as e:
            logger.warning(f"Readiness check failed: {e}")
            return False
        return True

    async def dispose(self) -> None:
        await self.engine.dispose()


db_manager: DatabaseSessionManager | None = None


def init_db(settings: Settings) -> DatabaseSessionManager:
    global db_manager
    db_manager = DatabaseSessionManager.from_settings(settings)
    return db_manager


async def close_db() -> None:
    global db_manager
    if db_manager is not None:
        await db_manager.dispose()
        db_manager = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    if db_manager is None:
        raise DatabaseError("Database not initialized", "connect")
    async with db_manager.session() as session:
        yield session
