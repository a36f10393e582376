"""Service test fixtures — async DB, fake provider transport, FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - Concurrency tests get a file-backed database instead: each session holds
      its own connection, so interleaved writers really race on constraints
    - get_db, get_http_client and get_settings overridden for the test client
    - db_manager patched so the readiness probe sees the test engine
    - Every outbound HTTP call goes through ProviderRouter (no network)

Design Decisions:
    - SQLite in-memory: fast, no external dependency, sufficient for ledger and
      route tests (Postgres-only features are not exercised here)
    - Tiny retry delays: the retry path runs for real without slowing the suite
    - Identity is verified through the mock transport, not by overriding
      get_current_user: the 401 paths stay covered end to end
"""

from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.pool import StaticPool
from httpx import ASGITransport, AsyncClient

from nexus.config import get_settings
from nexus.core.domain_types import LedgerKind, UserId
from nexus.db.base import Base
from nexus.infrastructure.database import get_db, DatabaseSessionManager
from nexus.infrastructure.http_client import ProviderHttpClient, get_http_client
from nexus.infrastructure.repositories import (
    SqlConnectionRepository, SqlDomainRegistrationRepository, SqlLedgerRepository,
)
from nexus.services.wallet_ledger import WalletLedger
import nexus.infrastructure.database as db_module
import nexus.models  # noqa: F401
from nexus.main import app

from tests.services.mock_providers import USER_ID, ProviderRouter, make_settings


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def router():
    return ProviderRouter()


@pytest.fixture
async def http_client(router):
    async with router.client() as c:
        yield c


@pytest.fixture
def provider_http(http_client, settings):
    """ProviderHttpClient factory bound to the mock transport."""
    def build(provider: str, secrets=()):
        return ProviderHttpClient.from_settings(
            provider, http_client, settings, secrets=secrets,
        )
    return build


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def racing_session_factory(tmp_path):
    """Sessions on separate connections to one file-backed database."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        echo=False, connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def ledger_repo(test_db):
    return SqlLedgerRepository(test_db)


@pytest.fixture
def connection_repo(test_db):
    return SqlConnectionRepository(test_db)


@pytest.fixture
def registration_repo(test_db):
    return SqlDomainRegistrationRepository(test_db)


@pytest.fixture
def ledger(ledger_repo, settings):
    return WalletLedger(ledger_repo, settings)


@pytest.fixture
def fund_wallet(ledger):
    """Credit a deposit for a user: await fund_wallet("30.00")."""
    async def fund(amount, user_id: str = USER_ID, reference_id: str | None = None):
        return await ledger.credit(
            UserId(user_id), Decimal(str(amount)), LedgerKind.DEPOSIT,
            "Test deposit", reference_id,
        )
    return fund


@pytest.fixture
async def client(test_engine, test_session_factory, http_client, settings):
    """FastAPI test client with DB, outbound HTTP and settings overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_http_client] = lambda: http_client
    app.dependency_overrides[get_settings] = lambda: settings

    # Patch db_manager for code that reads it directly (readiness probe)
    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager
