import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

# Ensure project root is on sys.path so `import ledgersync` works when running pytest from root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Force test settings before any ledgersync imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["BANK_CLIENT_TYPE"] = "mock"

from ledgersync.db.base import Base, build_session_factory  # noqa: E402
from ledgersync.db.cache import TransactionCache  # noqa: E402
from ledgersync.sync.clients.mock_client import MockBankClient  # noqa: E402
from ledgersync.sync.config import SyncConfig  # noqa: E402
from tests.fixtures.bank import FakeClock  # noqa: E402


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def cache(session_factory) -> TransactionCache:
    return TransactionCache(session_factory)


@pytest.fixture
def mock_client() -> MockBankClient:
    return MockBankClient()


@pytest.fixture
def sync_config() -> SyncConfig:
    return SyncConfig(client_type="mock", cooldown_minutes=60)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
