"""
Shared fixtures for service tests.

Service tests run against an in-memory SQLite database so cascade and
drift persistence go through real SQL.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from pgharbor.db.models import Base, Destination, Server, ServerSetting
from pgharbor.services.encryption_service import init_encryption


@pytest_asyncio.fixture
async def db() -> AsyncGenerator[AsyncSession]:
    """Yield a session bound to a fresh in-memory schema."""
    init_encryption()
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def destination(db: AsyncSession) -> Destination:
    server = Server(
        name="db-host-1",
        ip="203.0.113.10",
        is_reachable=True,
        is_usable=True,
        settings=ServerSetting(is_metrics_enabled=True, sentinel_token="sentinel-secret"),
    )
    dest = Destination(name="default", kind="standalone-docker", server=server)
    db.add(dest)
    await db.flush()
    return dest


@pytest.fixture
def executor() -> AsyncMock:
    """RemoteExecutor double that succeeds with empty output."""
    mock = AsyncMock()
    mock.run.return_value = ""
    return mock
