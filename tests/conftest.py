from __future__ import annotations

import os

# Settings are read at import time by the app module.
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")
os.environ.setdefault("AUTO_SEED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import httpx
import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine

from carpet_inventory.core.deps import get_session_factory
from carpet_inventory.db import models  # noqa: F401
from carpet_inventory.db.base import Base
from carpet_inventory.db.session import build_session_maker


@pytest.fixture
async def engine(tmp_path):
    """Fresh SQLite database per test; writers are serialized with BEGIN IMMEDIATE."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'inventory.db'}")

    @event.listens_for(eng.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself so SAVEPOINT works.
        dbapi_connection.isolation_level = None

    @event.listens_for(eng.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest.fixture
async def client(session_maker):
    from carpet_inventory.api.main import app

    app.dependency_overrides[get_session_factory] = lambda: session_maker
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
