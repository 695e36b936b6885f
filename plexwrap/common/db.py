"""Declarative base and column types shared by every Plexwrap table."""

from __future__ import annotations

import datetime as dt
import typing as typ

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

from plexwrap.common.time import require_aware

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine


class Base(DeclarativeBase):
    """Base declarative class for Plexwrap models."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime column that always binds and returns aware UTC values.

    SQLite drops tzinfo on the way out, so result values are re-tagged as
    UTC; naive values are refused on the way in.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Force bound datetime values to UTC with tzinfo."""
        if value is None:
            return None
        return require_aware(value, field="timestamp")

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Ensure result datetimes are UTC and timezone aware."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


async def init_storage(engine: AsyncEngine) -> None:
    """Create every table registered with the shared ``Base`` if absent.

    Model modules register themselves on import, so they are imported here
    before ``create_all`` runs.
    """
    import plexwrap.accounts.storage  # noqa: F401
    import plexwrap.jobs.storage  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
