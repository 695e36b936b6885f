"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from plexwrap.accounts.directory import SubjectDirectory
from plexwrap.common.db import init_storage

if typ.TYPE_CHECKING:
    from pathlib import Path


async def _setup_sqlite(database_url: str) -> AsyncEngine:
    """Create a SQLite engine and initialise every table."""
    engine = create_async_engine(database_url)
    try:
        await init_storage(engine)
    except Exception:
        await engine.dispose()
        raise
    return engine


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Return the URL of a throwaway SQLite database file."""
    return f"sqlite+aiosqlite:///{tmp_path / 'plexwrap_test.db'}"


@pytest_asyncio.fixture
async def session_factory(
    database_url: str,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a fresh async session factory backed by sqlite."""
    engine = await _setup_sqlite(database_url)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest.fixture
def directory(session_factory: async_sessionmaker[AsyncSession]) -> SubjectDirectory:
    """Return a subject directory over the test database."""
    return SubjectDirectory(session_factory)
