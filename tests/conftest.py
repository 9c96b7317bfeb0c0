"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import dramatiq
import pytest_asyncio
from dramatiq.brokers.stub import StubBroker
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from propwatch.common.storage import init_storage

if typ.TYPE_CHECKING:
    from pathlib import Path

# Actor modules register with the global broker at import time.
dramatiq.set_broker(StubBroker())


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a fresh async session factory backed by sqlite."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'propwatch_test.db'}"
    )
    try:
        await init_storage(engine)
    except Exception:
        await engine.dispose()
        raise

    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()
