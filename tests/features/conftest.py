"""Shared fixtures for BDD feature tests.

Steps drive async code with ``asyncio.run``, one event loop per call, so the
database used here keeps no pooled connections between calls.
"""

from __future__ import annotations

import asyncio
import typing as typ

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from propwatch.common.storage import init_storage

if typ.TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def bdd_session_factory(
    tmp_path: Path,
) -> typ.Iterator[async_sessionmaker[AsyncSession]]:
    """Yield a session factory on a fresh sqlite database."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'features.db'}", poolclass=NullPool
    )
    asyncio.run(init_storage(engine))
    try:
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        asyncio.run(engine.dispose())
