"""
Shared pytest configuration for deuce tests.

Database tests run against a file-backed SQLite database (aiosqlite) created
per test; set TEST_DATABASE_URL to run them against another database instead.
"""

import os

os.environ.setdefault("ENV", "test")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from deuce.database import db  # noqa: E402
from deuce.database.db import Base  # noqa: E402


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create a test database engine with all tables."""
    url = os.getenv("TEST_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'deuce_test.db'}")
    # Use NullPool to avoid connection reuse issues across event loops
    engine = create_async_engine(url, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # Code using db.AsyncSessionLocal() (like the recalculation queue) must hit the test database
    test_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = test_session_maker

    yield engine

    db.AsyncSessionLocal = original_async_session_local
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    """Create a test database session."""
    async with db.AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def session_factory(test_engine):
    """Session factory bound to the test database."""
    return db.AsyncSessionLocal

