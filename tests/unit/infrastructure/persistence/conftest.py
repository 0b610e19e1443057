"""Fixtures for repository tests against an in-memory SQLite database."""

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine

from fedauth.config import Config, DatabaseConfig
from fedauth.infrastructure.persistence.database import create_db_engine, create_session_factory
from fedauth.infrastructure.persistence.tables import metadata


@pytest_asyncio.fixture
async def engine():
    """Per-test engine with the full schema created."""
    config = Config(database=DatabaseConfig(url="sqlite+aiosqlite:///:memory:"))
    engine = create_db_engine(config)
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine: AsyncEngine):
    factory = create_session_factory(engine)
    async with factory() as session:
        yield session
        await session.rollback()
