# tests/conftest.py

import os
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Keep settings deterministic regardless of the developer's environment
for _var in ("FIXTURES_DATA_FOLDER", "FIXTURES_FILE_PATTERN", "DATABASE_URL"):
    os.environ.pop(_var, None)

from entities import Base  # noqa: E402
from FixtureSeed.metrics import reset_counters  # noqa: E402
from stores import CountingStore  # noqa: E402

DATA_DIR = Path(__file__).parent / "data"


@pytest.fixture(autouse=True)
def _reset_metrics():
    reset_counters()
    yield


@pytest.fixture
def data_dir() -> Path:
    return DATA_DIR


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    # One shared connection so the in-memory schema survives across sessions
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    try:
        yield eng
    finally:
        await eng.dispose()


@pytest.fixture
async def store(engine) -> AsyncIterator[CountingStore]:
    async with CountingStore(engine, Base) as s:
        yield s


@pytest.fixture
async def read_session(engine, store) -> AsyncIterator[AsyncSession]:
    """Session independent of the store's own, for reading back what was saved."""
    sm = async_sessionmaker(engine, expire_on_commit=False)
    async with sm() as s:
        yield s
