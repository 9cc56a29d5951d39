"""
Pytest configuration and fixtures.

Every test gets its own in-memory SQLite database (aiosqlite) with the
schema created from the models; nothing is shared between tests.
"""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from raceimport.db.session import create_session_factory, init_db


@pytest_asyncio.fixture
async def engine():
    """In-memory database; StaticPool keeps one connection so all sessions see it."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session
