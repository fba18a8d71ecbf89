"""Shared pytest fixtures"""

import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from assistant_runs.core.orm import Base
from tests.fixtures.database import make_assistant, make_thread


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'runs.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def assistant(session_maker):
    async with session_maker() as session:
        return await make_assistant(session)


@pytest_asyncio.fixture
async def thread(session_maker):
    async with session_maker() as session:
        return await make_thread(session)
