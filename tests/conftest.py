from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.pool import NullPool

from pingwatch.database import create_engine_for_url, create_session_factory, init_db
from pingwatch.stores import CheckLogStore, MonitorStore, UserStore


def _sqlite_engine(tmp_path: Path):
    # NullPool: every session opens its own connection on the loop that uses it
    return create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'pingwatch-test.db'}", poolclass=NullPool)


@pytest_asyncio.fixture
async def session_factory(tmp_path: Path):
    engine = _sqlite_engine(tmp_path)
    await init_db(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def sync_session_factory(tmp_path: Path):
    """Same database for synchronous tests (TestClient runs its own loop)."""
    engine = _sqlite_engine(tmp_path)
    asyncio.run(init_db(engine))
    yield create_session_factory(engine)
    asyncio.run(engine.dispose())


@pytest.fixture
def monitor_store(session_factory) -> MonitorStore:
    return MonitorStore(session_factory)


@pytest.fixture
def log_store(session_factory) -> CheckLogStore:
    return CheckLogStore(session_factory)


@pytest.fixture
def user_store(session_factory) -> UserStore:
    return UserStore(session_factory)
