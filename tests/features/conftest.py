"""Shared fixtures for BDD feature tests.

Steps drive async code with ``asyncio.run``, so every step runs on its own
event loop. The engine here uses ``NullPool`` so no connection outlives the
loop that opened it.
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

from plexwrap.common.db import init_storage


@pytest.fixture
def session_factory(
    database_url: str,
) -> typ.Iterator[async_sessionmaker[AsyncSession]]:
    """Yield a session factory safe to use from several event loops."""
    engine = create_async_engine(database_url, poolclass=NullPool)
    asyncio.run(init_storage(engine))
    try:
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        asyncio.run(engine.dispose())
